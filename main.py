# main.py
import asyncio
import sys

from chainstream.config import load_settings
from chainstream.errors import ConfigError
from chainstream.logger import render_banner, setup_console_logger
from chainstream.signing import OperatingIdentity
from chainstream.supervisor import Supervisor


def main(config_path: str = None) -> int:
    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return 1

    logger = setup_console_logger("chainstream", settings.log_level)
    identity = OperatingIdentity.from_key(settings.private_key)

    render_banner(settings.networks, settings.reference_network,
                  f"{settings.min_reference_balance_wei / 10**18:g}",
                  settings.execution.executor_address, settings.dry_run)
    logger.info(f"Operating identity: {identity.address}")

    supervisor = Supervisor(settings, identity, logger)
    try:
        import uvloop
        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    except ImportError:
        pass

    try:
        asyncio.run(supervisor.run())
    except KeyboardInterrupt:
        print("\n🛑 Engine Stopped by User.")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1] if len(sys.argv) > 1 else None))
