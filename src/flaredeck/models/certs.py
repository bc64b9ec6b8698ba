from pydantic import BaseModel

__all__ = ["CertPair"]


class CertPair(BaseModel):
    """A PEM encoded private key and its self-signed certificate."""

    key: str
    cert: str
