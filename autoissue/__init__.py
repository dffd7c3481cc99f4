"""autoissue: plain-language requests to confirmed GitHub issue operations."""

from autoissue.identity import __version__
