from autoissue.cli import app

app()
