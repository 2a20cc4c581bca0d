"""Main application entry point for EEG playback."""

import sys
import argparse
import logging
from pathlib import Path
from typing import Optional

from eegplayback.monitoring.aggregator import ConsoleReportPrinter
from eegplayback.recordings.synthetic import generate_synthetic_recording
from eegplayback.services.playback_driver import PlaybackDriver
from eegplayback.services.playback_service import PlaybackSession

from .config import EEGPlaybackConfig

logger = logging.getLogger(__name__)


class Server:

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        # Load configuration
        self.config = EEGPlaybackConfig(config_path)
        # Command line level wins over config
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level)
        self.cleaned_up = False

    def init(self, recording_seconds: Optional[float] = None,
             sample_rate: Optional[float] = None,
             display_rate: Optional[float] = None):
        logger.info("Initializing services...")

        duration = recording_seconds or self.config.get('recording.duration_seconds', 30.0)
        rate = sample_rate or self.config.get('recording.sample_rate_hz', 250.0)
        if display_rate is not None:
            self.config.set('playback.display_rate_mm_per_sec', display_rate)

        recording = generate_synthetic_recording(
            duration_seconds=duration,
            sample_rate_hz=rate,
            seed=self.config.get('recording.seed'),
        )
        logger.info(f"Recording: {recording.channel_count} channels, {duration}s at {rate}Hz")

        self.session = PlaybackSession(recording, self.config)
        self.printer = ConsoleReportPrinter(self.session.topics)
        self.driver = PlaybackDriver(self.session)

    def run(self, duration: Optional[float]) -> None:
        try:
            if not self.driver.start():
                raise RuntimeError("Playback did not start")
            finished = self.driver.wait(duration)
            if not finished:
                logger.info(f"Run duration of {duration}s elapsed, stopping playback")
        except Exception as e:
            logger.error(f"Error in run: {e}")
            raise
        finally:
            self.cleanup()

    def cleanup(self) -> None:
        if self.cleaned_up:
            return
        self.cleaned_up = True
        self.driver.stop()
        self.session.shutdown()
        self.printer.shutdown()


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path')
    console_output = config.get('logging.console_output', True)

    handlers = []

    # File handler, only when a path is configured
    if log_file_path:
        Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path)
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("EEG playback starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def main() -> None:
    """Main entry point for the EEG playback application."""
    parser = argparse.ArgumentParser(
        description="EEG playback - stream a recording with integrity checks and ischemia detection"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (defaults apply when omitted)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (overrides config, default: INFO)"
    )

    parser.add_argument(
        "--duration",
        type=float,
        help="Stop after this many real seconds (default: play to the end of the recording)"
    )

    parser.add_argument(
        "--display-rate",
        type=float,
        help="Display rate in mm/s; 30 is real time (overrides config)"
    )

    parser.add_argument(
        "--recording-seconds",
        type=float,
        help="Length of the synthetic recording in seconds (default: 30)"
    )

    parser.add_argument(
        "--sample-rate",
        type=float,
        help="Sample rate of the synthetic recording in Hz (default: 250)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="eegplayback v0.1.0"
    )

    args = parser.parse_args()

    try:
        server = Server(args.config, args.log_level)
        server.init(
            recording_seconds=args.recording_seconds,
            sample_rate=args.sample_rate,
            display_rate=args.display_rate,
        )
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Startup error: {e}")
        sys.exit(1)

    try:
        server.run(args.duration)
    except KeyboardInterrupt:
        server.cleanup()
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
