"""
Thai Smart Card Bridge Server
=============================
Reads Thai national ID cards from any PC/SC reader and pushes the data to
web applications over WebSocket.

Usage:
    python server.py [config.toml]

Default URL: ws://127.0.0.1:8182/
"""

import asyncio
import logging
import ssl
import sys
from typing import Optional

from bridge import CardBridge, EventHub
from config import AppConfig, ConfigError, load_config
from display import run_display
from pipeline import CardEventProcessor
from readers import SMARTCARD_AVAILABLE, CardMonitor, PcscTransport, TransportError
from security import ApiKeyAuthenticator, AuditLogger, AuditSeverity, CryptoError, CryptoService
from security.rate_limiter import RateLimitConfig, RateLimiter

VERSION = "1.0.0"
EVENT_QUEUE_SIZE = 100

logger = logging.getLogger(__name__)


def setup_logging(config: AppConfig):
    level = getattr(logging, config.logging.level.upper(), logging.INFO)
    handlers = [logging.StreamHandler()]
    if config.logging.file:
        handlers.append(logging.FileHandler(config.logging.file, encoding='utf-8'))
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def init_crypto(config: AppConfig, audit: AuditLogger) -> Optional[CryptoService]:
    """Crypto service when encryption is enabled; a bad key raises CryptoError"""
    security = config.security
    if not security.enable_encryption:
        logger.warning("PII encryption DISABLED - sensitive data transmitted in plaintext!")
        return None

    crypto = CryptoService.from_base64_key(security.encryption_key)
    if security.encrypted_fields:
        logger.info(f"PII encryption ENABLED ({len(security.encrypted_fields)} fields protected)")
        logger.info(f"   Encrypted fields: {', '.join(security.encrypted_fields)}")
    else:
        logger.warning("PII encryption ENABLED with no field list - every field will be encrypted")
    audit.log_configuration("Field encryption enabled",
                            {"fields": list(security.encrypted_fields) or "all"})
    return crypto


def build_ssl_context(config: AppConfig) -> Optional[ssl.SSLContext]:
    server = config.server
    if not server.enable_tls:
        logger.warning("TLS is DISABLED - communication is NOT encrypted!")
        return None
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(server.tls_cert_path, server.tls_key_path)
    logger.info(f"TLS enabled (cert: {server.tls_cert_path})")
    return context


def print_banner(config: AppConfig):
    security = config.security
    print("=" * 60)
    print(f"  Thai Smart Card Bridge v{VERSION}")
    print("  Supports: Thai national ID card (PC/SC)")
    print("=" * 60)
    print(f"  URL        : {config.server.websocket_url}")
    print(f"  Status     : {'Ready' if SMARTCARD_AVAILABLE else 'pyscard missing - no card reading'}")
    print(f"  Auth       : {'API key (' + security.api_key_header + ')' if security.enable_authentication else 'off'}")
    print(f"  Rate limit : {'on' if security.enable_rate_limiting else 'off'}")
    print(f"  Encryption : {'on' if security.enable_encryption else 'off'}")
    print("=" * 60)
    print()


def build_bridge(config: AppConfig, hub: EventHub, audit: AuditLogger) -> CardBridge:
    security = config.security
    rate_limiter = None
    if security.enable_rate_limiting:
        rate_limiter = RateLimiter(RateLimitConfig(
            max_requests=security.rate_limit_requests,
            window_secs=security.rate_limit_window_secs,
            max_connections=security.rate_limit_max_connections,
        ))
        logger.info(
            f"Rate limiting ENABLED ({security.rate_limit_requests} requests per "
            f"{security.rate_limit_window_secs}s, {security.rate_limit_max_connections} connections per source)"
        )
    else:
        logger.warning("Rate limiting DISABLED")

    authenticator = None
    if security.enable_authentication:
        if not security.api_keys:
            logger.warning("Authentication enabled but no API keys configured - every client will be rejected")
        authenticator = ApiKeyAuthenticator(security.api_keys, security.api_key_header)
        logger.info(f"API key authentication ENABLED ({len(security.api_keys)} keys)")
    else:
        logger.warning("Authentication DISABLED - any local client can subscribe")

    if not config.server.cors_allow_all:
        logger.info(f"Origin allow-list: {', '.join(config.server.allowed_origins) or '(empty)'}")

    return CardBridge(config.server, security, hub, audit, rate_limiter, authenticator)


async def main(config: AppConfig, crypto: Optional[CryptoService], audit: AuditLogger):
    ssl_context = build_ssl_context(config)

    events: asyncio.Queue = asyncio.Queue(maxsize=EVENT_QUEUE_SIZE)
    display_queue: asyncio.Queue = asyncio.Queue(maxsize=EVENT_QUEUE_SIZE)
    hub = EventHub()
    processor = CardEventProcessor(config.output, config.security, audit, hub, crypto, display_queue)
    bridge = build_bridge(config, hub, audit)

    tasks = [
        asyncio.create_task(processor.run(events)),
        asyncio.create_task(run_display(display_queue)),
        asyncio.create_task(bridge.cleanup_loop(
            config.security.rate_limit_cleanup_interval_secs,
            config.security.rate_limit_cleanup_threshold_secs,
        )),
    ]

    if SMARTCARD_AVAILABLE:
        try:
            monitor = CardMonitor(PcscTransport(), config.card, config.monitor, events)
            tasks.append(asyncio.create_task(monitor.run()))
        except TransportError as e:
            logger.warning(f"Card monitor not started: {e}")
    else:
        logger.warning("pyscard not installed - card monitor not started, server only")

    async with bridge.serve(ssl_context):
        logger.info(f"WebSocket server listening on {config.server.websocket_url}")
        try:
            await asyncio.Future()
        finally:
            for task in tasks:
                task.cancel()


def run(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    try:
        config = load_config(argv[0] if argv else None)
    except ConfigError as e:
        print(f"ERROR: {e}")
        return 1

    setup_logging(config)
    audit = AuditLogger(config.security.enable_audit_logging)
    audit.log_configuration("Server starting", {"version": VERSION, "url": config.server.websocket_url})

    try:
        crypto = init_crypto(config, audit)
    except CryptoError as e:
        logger.critical(f"Failed to initialize encryption: {e.message}")
        audit.log_configuration(f"Encryption initialization failed: {e.message}",
                                severity=AuditSeverity.CRITICAL)
        return 1

    print_banner(config)

    try:
        asyncio.run(main(config, crypto, audit))
    except KeyboardInterrupt:
        print("\nServer stopped.")
    except (OSError, ssl.SSLError) as e:
        logger.critical(f"Server failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(run())
