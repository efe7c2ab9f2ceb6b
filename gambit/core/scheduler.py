from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from gambit.core.gambit import DegenGambit
from gambit.core.logger import get_logger

logger = get_logger("scheduler")


class BlockProducer:
    """Mines one block per interval in the background."""

    def __init__(self, machine: DegenGambit, interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError("block interval must be positive")
        self.machine = machine
        self.interval_seconds = interval_seconds
        self.scheduler = BackgroundScheduler()

    def start(self):
        self.scheduler.add_job(
            self.produce_block,
            IntervalTrigger(seconds=self.interval_seconds),
            id="produce_block",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(
            "Block producer started",
            extra={"interval_seconds": self.interval_seconds, "height": self.machine.clock.current_block},
        )

    def produce_block(self) -> int:
        try:
            return self.machine.mine()
        except Exception as e:
            logger.error(f"Error producing block: {e}", exc_info=True)
            raise

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Block producer shutdown")
