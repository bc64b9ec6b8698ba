"""Self-signed certificate cache for local HTTPS."""

import asyncio
import datetime
import ipaddress
import logging
import time
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from flaredeck.constants import CERT_MAX_AGE_DAYS
from flaredeck.logger import Logger, logger
from flaredeck.models.certs import CertPair
from flaredeck.paths import cert_dir

__all__ = ["CertCache", "generate_certificate", "get_https_options"]

log = logging.getLogger(__name__)

ONE_DAY_SECONDS = 24 * 60 * 60


def generate_certificate(days: int = CERT_MAX_AGE_DAYS) -> CertPair:
    """Create an RSA key and a self-signed certificate for localhost."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = issuer = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, "localhost"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "flaredeck"),
        ]
    )
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=1))
        .not_valid_after(now + datetime.timedelta(days=days))
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName("localhost"),
                    x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
                    x509.IPAddress(ipaddress.ip_address("::1")),
                ]
            ),
            critical=False,
        )
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )
    return CertPair(
        key=key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii"),
        cert=cert.public_bytes(serialization.Encoding.PEM).decode("ascii"),
    )


class CertCache:
    """
    Generates a key/certificate pair once and reuses it from disk until it expires.

    Files live in ``<config home>/local-cert/{key,cert}.pem``. A cached pair is reused
    only if both files exist and the older one is younger than ``max_age_days``.
    Failing to write the cache is never fatal: the fresh pair is still returned.
    """

    def __init__(
        self,
        directory: Path | None = None,
        max_age_days: int = CERT_MAX_AGE_DAYS,
        output: Logger | None = None,
    ) -> None:
        self.directory = directory or cert_dir()
        self.max_age_days = max_age_days
        self.output = output or logger

    @property
    def key_path(self) -> Path:
        return self.directory / "key.pem"

    @property
    def cert_path(self) -> Path:
        return self.directory / "cert.pem"

    async def get_credentials(self) -> CertPair:
        cached = self._read_cached()
        if cached is not None:
            return cached

        self.output.log("Generating new self-signed certificate...")
        pair = await asyncio.to_thread(generate_certificate, self.max_age_days)

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self.key_path.write_text(pair.key, encoding="utf-8")
            self.cert_path.write_text(pair.cert, encoding="utf-8")
        except OSError as e:
            self._discard_partial()
            self.output.warn(
                f"Unable to cache generated self-signed certificate in {self.directory}.",
                str(e),
            )
        return pair

    def _read_cached(self) -> CertPair | None:
        try:
            oldest = min(self.key_path.stat().st_mtime, self.cert_path.stat().st_mtime)
        except FileNotFoundError:
            return None

        if time.time() - oldest > self.max_age_days * ONE_DAY_SECONDS:
            log.debug("Cached certificate in %s has expired", self.directory)
            return None

        try:
            return CertPair(
                key=self.key_path.read_bytes().decode("ascii"),
                cert=self.cert_path.read_bytes().decode("ascii"),
            )
        except UnicodeDecodeError:
            log.debug("Cached certificate in %s is not PEM text", self.directory)
            return None

    def _discard_partial(self) -> None:
        # A key without its certificate must not be picked up as a valid cache entry.
        for path in (self.key_path, self.cert_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                log.debug("Could not remove %s: %s", path, e)


async def get_https_options(config_home: Path | None = None) -> CertPair:
    """Return credentials for a local HTTPS server, generating them if needed."""
    return await CertCache(cert_dir(config_home)).get_credentials()
