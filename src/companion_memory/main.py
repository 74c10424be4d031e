"""
Command-line chat client that wires the memory engine together.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import IO, Optional

from dotenv import load_dotenv

from .config import Settings
from .manager import ModelManager
from .providers import LLMProviderError, QuotaExceededError
from .services import (
    ChatService,
    JsonFileBlobStore,
    MemorySegmentManager,
    MessageStore,
    SummarizationScheduler,
    Summarizer,
    SummaryCache,
)
from .services.chat import load_system_prompt

logger = logging.getLogger(__name__)

HELP_TEXT = """Commands:
  /summary     show the current conversation summary
  /summarize   summarize unsummarized messages now
  /memories    show memory statistics
  /stats       show usage statistics
  /destroy     erase all conversation history and memories
  /quit        summarize and exit"""


def load_env_file() -> None:
    """Load the first .env file found next to the entry point, its parent, the cwd or the package."""
    main_dir = os.path.dirname(os.path.abspath(sys.argv[0]))
    package_dir = os.path.dirname(os.path.abspath(__file__))
    env_locations = [
        os.path.join(main_dir, ".env"),
        os.path.join(os.path.dirname(main_dir), ".env"),
        os.path.join(os.getcwd(), ".env"),
        os.path.join(package_dir, ".env"),
    ]
    for env_path in env_locations:
        if os.path.exists(env_path):
            logger.info(f"Loading .env from {env_path}")
            load_dotenv(env_path)
            return
    logger.info("No .env file found in expected locations")


class CompanionApp:
    """Builds the services from settings and runs the chat loop."""

    def __init__(self, settings: Settings, model_manager: Optional[ModelManager] = None):
        self.settings = settings
        self.model_manager = model_manager or ModelManager(provider_name=settings.provider)

        blob_store = JsonFileBlobStore(settings.data_dir)
        self.store = MessageStore(blob_store)
        self.store.load()

        self.memory = MemorySegmentManager(settings.memory_config, blob_store)
        self.memory.load()

        self.summarizer = Summarizer(
            self.model_manager,
            cache=SummaryCache.from_config(settings.memory_config),
            config=settings.memory_config,
            model=self.model_manager.summary_model,
            assistant_name=settings.assistant_name,
            prompt_path=settings.summary_prompt_file,
        )
        self.scheduler = SummarizationScheduler(
            self.store,
            self.summarizer,
            config=settings.trigger_config,
            memory_manager=self.memory,
        )
        self.chat = ChatService(
            self.model_manager,
            self.store,
            self.scheduler,
            memory_manager=self.memory,
            config=settings.trigger_config,
            system_prompt=load_system_prompt(settings.system_prompt_file),
        )
        self.notices: list[str] = []
        self.chat.on_summarization_failure(self._on_summarization_failure)

    def _on_summarization_failure(self, error: Exception) -> None:
        if isinstance(error, QuotaExceededError):
            self.notices.append(f"(memory update paused: {error.user_message})")
        else:
            self.notices.append("(memory update failed, will retry later)")

    def _flush_notices(self, out: IO[str]) -> None:
        while self.notices:
            print(self.notices.pop(0), file=out)

    def handle_command(self, command: str, out: IO[str]) -> bool:
        """Run a slash command. Returns False when the loop should stop."""
        name = command.strip().lower()
        if name in ("/quit", "/exit"):
            return False
        if name == "/summary":
            print(self.store.summary or "(no summary yet)", file=out)
        elif name == "/summarize":
            try:
                summary = self.scheduler.summarize_now()
            except LLMProviderError as e:
                print(f"Summarization failed: {e}", file=out)
            else:
                print(summary or "(nothing new to summarize)", file=out)
        elif name == "/memories":
            print(self.memory.get_stats(), file=out)
        elif name == "/stats":
            print(self.chat.get_stats(), file=out)
            print(self.model_manager.get_stats(), file=out)
        elif name == "/destroy":
            self.chat.destroy_memories()
            print(f"{self.settings.assistant_name} has forgotten everything.", file=out)
        else:
            print(HELP_TEXT, file=out)
        return True

    def run(self, stdin: IO[str] = sys.stdin, out: IO[str] = sys.stdout) -> None:
        name = self.settings.assistant_name
        print(f"{name} is listening. Type /help for commands.", file=out)
        self.scheduler.start_periodic()
        try:
            for line in stdin:
                text = line.strip()
                if not text:
                    continue
                if text.startswith("/"):
                    if not self.handle_command(text, out):
                        break
                    continue
                try:
                    reply = self.chat.send_message(text)
                except QuotaExceededError as e:
                    print(e.user_message, file=out)
                except LLMProviderError as e:
                    logger.error(f"Chat request failed: {e}")
                    print(f"Sorry, I couldn't reach the AI service: {e}", file=out)
                else:
                    print(f"{name}: {reply}", file=out)
                self._flush_notices(out)
        finally:
            self.chat.close()


def main():
    """Main entry point."""
    load_env_file()
    settings = Settings.from_env()

    log_dir = settings.data_dir / "logs"
    os.makedirs(log_dir, exist_ok=True)
    log_file = log_dir / "companion.log"

    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stderr),
        RotatingFileHandler(
            log_file,
            mode="a",
            encoding="utf-8",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        ),
    ]
    # Keep the console quiet unless debugging; the file gets everything at INFO+
    handlers[0].setLevel(logging.DEBUG if settings.debug else logging.WARNING)
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )
    logger.info(f"Logging to file: {log_file}")

    try:
        app = CompanionApp(settings)
        app.run()
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    except Exception as e:
        logger.error(f"Companion error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
