"""Message store holding the conversation log and its summary."""

import logging
import threading
from datetime import datetime
from typing import List, Optional

from ..models.conversation import ConversationContext, Message
from .storage import CONVERSATION_CONTEXT_KEY, BlobStore, BlobStoreError, MemoryBlobStore

logger = logging.getLogger(__name__)


class MessageStore:
    """Append-only conversation log with a wholesale-replaced summary.

    Mutations do not persist on their own; call ``save`` after a batch of
    changes.
    """

    def __init__(self, blob_store: Optional[BlobStore] = None, key: str = CONVERSATION_CONTEXT_KEY):
        self.blob_store = blob_store or MemoryBlobStore()
        self.key = key
        self._context = ConversationContext.empty()
        self._lock = threading.RLock()

    @property
    def context(self) -> ConversationContext:
        """Snapshot of the current conversation state."""
        with self._lock:
            return self._context

    @property
    def summary(self) -> str:
        return self.context.summary

    def __len__(self) -> int:
        return len(self.context.messages)

    def append(self, text: str, is_user: bool) -> Message:
        """Append a message stamped with the current time."""
        now = datetime.now()
        message = Message(text=text, is_user=is_user, timestamp=now)
        with self._lock:
            self._context = ConversationContext(
                messages=self._context.messages + (message,),
                summary=self._context.summary,
                last_updated=now,
            )
            total = len(self._context.messages)
        logger.debug(f"Message added - is_user: {is_user}, length: {len(text)}, total: {total}")
        return message

    def recent(self, limit: int = 50) -> List[Message]:
        """Return the last ``limit`` messages, oldest first."""
        if limit <= 0:
            return []
        messages = self.context.messages
        return list(messages[-limit:])

    def messages_since(self, index: int) -> List[Message]:
        """Return messages from position ``index`` to the end."""
        return list(self.context.messages[max(index, 0):])

    def replace_summary(self, text: str) -> None:
        with self._lock:
            self._context = ConversationContext(
                messages=self._context.messages,
                summary=text,
                last_updated=datetime.now(),
            )
        logger.info(f"Conversation summary updated, length: {len(text)}")

    def clear(self) -> None:
        """Drop every message and the summary."""
        with self._lock:
            previous = len(self._context.messages)
            self._context = ConversationContext.empty()
        logger.info(f"Conversation context cleared - previous messages: {previous}")

    def load(self) -> ConversationContext:
        """Load the stored context, falling back to an empty one."""
        try:
            document = self.blob_store.read_json(self.key)
            context = (
                ConversationContext.from_dict(document)
                if document is not None
                else ConversationContext.empty()
            )
        except (BlobStoreError, ValueError) as e:
            logger.error(f"Error loading conversation context, starting fresh: {e}")
            context = ConversationContext.empty()
        else:
            if document is None:
                logger.info("No existing conversation context found, starting fresh")
            else:
                logger.info(
                    f"Conversation context loaded. Messages: {len(context.messages)}, "
                    f"summary length: {len(context.summary)}"
                )

        with self._lock:
            self._context = context
        return context

    def save(self) -> bool:
        """Persist the current context.

        Returns:
            True if the write succeeded. Failures are logged and the in-memory
            state stays authoritative for the next attempt.
        """
        context = self.context
        try:
            self.blob_store.write_json(self.key, context.to_dict())
        except BlobStoreError as e:
            logger.error(f"Error saving conversation context: {e}")
            return False
        logger.debug(
            f"Conversation context saved. Messages: {len(context.messages)}, "
            f"summary length: {len(context.summary)}"
        )
        return True
