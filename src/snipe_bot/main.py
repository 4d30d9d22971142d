"""Main sniping engine application."""

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .core.models import Ladder, Settings, TradeResult
from .core.status import StatusBoard
from .core.store import StateStore
from .data.feed import DexScreenerFeed, MarketFeed
from .data.rpc import SolanaRpcClient
from .execution.engine import TradeExecutor
from .execution.ladder import LadderEngine
from .execution.quotes import QuoteService
from .execution.signer import DisconnectedSigner, RemoteSigner, Signer
from .risk.gate import RiskGate
from .scanner.market_scanner import ScanReport, Scanner

logger = logging.getLogger(__name__)


class SnipeBot:
    """Composition root: owns the state store and wires every component."""

    def __init__(
        self,
        config: Optional[Dict] = None,
        feed: Optional[MarketFeed] = None,
        rpc: Optional[SolanaRpcClient] = None,
        signer: Optional[Signer] = None,
        quote_service: Optional[QuoteService] = None,
    ):
        """Initialize sniping engine."""
        defaults = self._default_config()
        if config:
            for key, val in config.items():
                if isinstance(val, dict) and key in defaults and isinstance(defaults[key], dict):
                    defaults[key].update(val)
                else:
                    defaults[key] = val
        self.config = defaults
        self._running = False
        self._tasks: List[asyncio.Task] = []

        self._init_components(feed, rpc, signer, quote_service)

        logger.info("Snipe bot initialized")

    def _default_config(self) -> Dict:
        """Default configuration."""
        return {
            # None keeps settings in memory only
            'settings_path': 'snipe_bot_settings.json',
            'signer_url': None,
            'jupiter_base_url': None,
            'dexscreener_base_url': None,
            # applied on top of the persisted settings at startup
            'settings': {},
            'executor': {},
            'scanner': {},
            'ladder': {},
        }

    def _init_components(
        self,
        feed: Optional[MarketFeed],
        rpc: Optional[SolanaRpcClient],
        signer: Optional[Signer],
        quote_service: Optional[QuoteService],
    ):
        """Initialize all bot components."""
        try:
            # State store (settings, ladders, candidates)
            path = self.config.get('settings_path')
            loaded = StateStore.load(Path(path)).settings if path else Settings()
            overrides = self.config.get('settings') or {}
            settings = Settings.model_validate({**loaded.model_dump(), **overrides})
            self.store = StateStore(settings, Path(path) if path else None)
            self.status = StatusBoard()

            # Collaborators
            self.feed = feed or DexScreenerFeed(self.config.get('dexscreener_base_url'))
            self.rpc = rpc or SolanaRpcClient(settings.endpoint)
            self.quotes = quote_service or QuoteService(self.rpc, self.config.get('jupiter_base_url'))
            if signer is None:
                signer_url = self.config.get('signer_url')
                signer = RemoteSigner(signer_url) if signer_url else DisconnectedSigner()
            self.signer = signer

            # Engines
            self.risk_gate = RiskGate(self.rpc)
            self.executor = TradeExecutor(
                self.store,
                self.risk_gate,
                self.quotes,
                self.rpc,
                self.signer,
                self.status,
                self.config['executor'],
            )
            self.scanner = Scanner(self.store, self.feed, config=self.config['scanner'])
            self.ladder = LadderEngine(self.store, self.executor, self.feed, self.config['ladder'])

            logger.info("All components initialized successfully")

        except Exception as e:
            logger.error(f"Error initializing components: {e}")
            raise

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        """Start the scan and ladder timers and run until stopped."""
        try:
            logger.info("Starting snipe bot...")

            if isinstance(self.signer, RemoteSigner):
                await self.signer.connect()
            if not self.signer.connected:
                logger.warning("No wallet connected; trades will be rejected until one is")

            self._running = True
            self._tasks = [
                asyncio.create_task(self.scanner.run()),
                asyncio.create_task(self.ladder.run()),
            ]
            await asyncio.gather(*self._tasks)

        except asyncio.CancelledError:
            logger.info("Snipe bot tasks cancelled")
        except Exception as e:
            logger.error(f"Error starting snipe bot: {e}")
            raise

    async def stop(self):
        """Stop the snipe bot."""
        try:
            logger.info("Stopping snipe bot...")

            self._running = False
            await self.scanner.stop()
            await self.ladder.stop()
            for task in self._tasks:
                task.cancel()
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks = []

            self.store.save()
            await self.feed.close()
            await self.quotes.close()
            await self.signer.close()
            await self.rpc.close()

            logger.info("Snipe bot stopped")

        except Exception as e:
            logger.error(f"Error stopping snipe bot: {e}")

    # ------------------------------------------------------------------
    # Operator commands
    # ------------------------------------------------------------------

    async def buy(self, mint: str) -> TradeResult:
        """Buy ``mint`` using the scanned snapshot, if any, for ladder entry."""
        candidate = self.store.find_candidate(mint)
        return await self.executor.buy(mint, candidate.snapshot if candidate else None)

    async def sell(self, mint: str, pct: Optional[float] = None) -> TradeResult:
        return await self.executor.sell(mint, pct)

    async def arm(self, mint: str) -> Ladder:
        return await self.ladder.arm(mint)

    async def disarm(self, mint: str) -> Optional[Ladder]:
        return await self.ladder.disarm(mint)

    async def edit_ladder(self, mint: str, levels: str, parts: str) -> Ladder:
        return await self.ladder.edit(mint, levels, parts)

    async def scan_now(self) -> ScanReport:
        return await self.scanner.scan_once()

    async def import_settings(self, text: str) -> Settings:
        """Apply a settings document; raises SettingsImportError and changes nothing on failure."""
        settings = await self.store.import_json(text)
        if settings.endpoint != self.rpc.endpoint:
            logger.info(f"RPC endpoint changed to {settings.endpoint}")
            self.rpc.endpoint = settings.endpoint
        return settings

    def export_settings(self) -> str:
        return self.store.export_json()

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down...")
        asyncio.create_task(self.stop())

    def get_status(self) -> Dict[str, Any]:
        """Get bot status."""
        candidates = self.store.candidate_list()
        ladders = self.store.ladders()
        return {
            'running': self._running,
            'wallet': self.signer.public_key,
            'status': self.status.message,
            'scan_sequence': candidates.sequence,
            'candidates': len(candidates.candidates),
            'ladders': len(ladders),
            'armed_ladders': sum(1 for ladder in ladders.values() if ladder.armed),
        }


def _config_from_env() -> Dict:
    """Build config dict from environment variables."""
    config: Dict = {}

    settings_path = os.getenv('SNIPE_SETTINGS_PATH', '').strip()
    if settings_path:
        config['settings_path'] = settings_path

    for env_name, key in (
        ('SNIPE_SIGNER_URL', 'signer_url'),
        ('JUPITER_BASE_URL', 'jupiter_base_url'),
        ('DEXSCREENER_BASE_URL', 'dexscreener_base_url'),
    ):
        value = os.getenv(env_name, '').strip()
        if value:
            config[key] = value

    # Settings overrides
    settings: Dict[str, Any] = {}
    rpc_url = os.getenv('SOLANA_RPC_URL', '').strip()
    if rpc_url:
        settings['endpoint'] = rpc_url
    chain_id = os.getenv('SNIPE_CHAIN_ID', '').strip()
    if chain_id:
        settings['chain_id'] = chain_id
    commitment = os.getenv('SNIPE_COMMITMENT', '').strip().lower()
    if commitment:
        settings['commitment'] = commitment

    for env_name, key, cast in (
        ('SNIPE_SCAN_INTERVAL_SEC', 'scan_interval_sec', float),
        ('SNIPE_BUY_SOL', 'buy_sol', float),
        ('SNIPE_SLIPPAGE_BPS', 'slippage_bps', int),
        ('SNIPE_MAX_IMPACT_PCT', 'max_impact_pct', float),
        ('SNIPE_PRIORITY_FEE', 'priority_fee_lamports', int),
    ):
        raw = os.getenv(env_name, '').strip()
        if raw:
            settings[key] = cast(raw)

    for env_name, key in (
        ('SNIPE_AUTO_SCAN', 'auto_scan'),
        ('SNIPE_PRESIM', 'pre_trade_simulation'),
    ):
        raw = os.getenv(env_name, '').strip().lower()
        if raw in ('0', 'false', 'no'):
            settings[key] = False
        elif raw in ('1', 'true', 'yes'):
            settings[key] = True

    if settings:
        config['settings'] = settings

    return config


def _configure_logging():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('snipe_bot.log'),
            logging.StreamHandler(sys.stdout)
        ]
    )


async def main():
    """Main entry point."""
    load_dotenv()
    config = _config_from_env()

    bot = SnipeBot(config if config else None)
    signal.signal(signal.SIGINT, bot._signal_handler)
    signal.signal(signal.SIGTERM, bot._signal_handler)

    try:
        await bot.start()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
    finally:
        await bot.stop()


def run():
    """Console script entry point."""
    _configure_logging()
    asyncio.run(main())


if __name__ == "__main__":
    run()
