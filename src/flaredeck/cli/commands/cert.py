from flaredeck.certs import CertCache
from flaredeck.cli.context import get_app_context, run
from flaredeck.logger import console
from flaredeck.paths import cert_dir


async def _cert_async() -> None:
    async with get_app_context() as ctx:
        cache = CertCache(cert_dir(ctx.settings.config_home))
        await cache.get_credentials()
    console.print(f"Key:         [bold]{cache.key_path}[/bold]")
    console.print(f"Certificate: [bold]{cache.cert_path}[/bold]")


def cert() -> None:
    """Create or reuse the self-signed certificate for local HTTPS."""
    run(_cert_async())
