"""Per-page structured extraction against the inference provider."""

import json
import logging
from typing import List, Optional

from .exceptions import RemoteCallError
from .memory import BoundedConversation, Turn
from .modes import Mode, Row
from .providers.base import Generation, InferenceProvider
from .renderers.base import ImageRef
from .retry import RetryingCaller

logger = logging.getLogger(__name__)

EMPTY_REPLY = json.dumps({"rows": []})


class Extractor:
    """Turn page images into rows, keeping a window of earlier pages.

    One extractor serves one document. Calls to ``extract`` must not overlap:
    they share the conversation and the running sheet.
    """

    def __init__(
        self,
        mode: Mode,
        provider: InferenceProvider,
        caller: RetryingCaller,
        memory_limit: int,
    ) -> None:
        self.mode = mode
        self.provider = provider
        self.caller = caller
        self.conversation = BoundedConversation(memory_limit)
        self.sheet: List[Row] = []

    async def _generate(self, page_number: int) -> Optional[Generation]:
        try:
            return await self.caller.call(
                self.provider.generate,
                self.mode.response_schema(),
                self.mode.instructions,
                self.conversation.outbound(),
            )
        except RemoteCallError as e:
            logger.error(f"Extraction failed for page {page_number}: {e}")
            return None

    async def extract(self, page_number: int, image: ImageRef) -> List[Row]:
        """Extract the rows of one page and add them to the sheet.

        A failed or empty reply yields ``[]``; it never raises for
        remote-call failures.
        """
        self.conversation.push(Turn.user(image))

        generation = await self._generate(page_number)
        if generation is None or not generation.text.strip():
            # Keep user/model turns paired for the next page
            self.conversation.push(Turn.model(EMPTY_REPLY))
            logger.warning(f"No rows returned for page {page_number}")
            return []

        items = self.mode.parse(generation.data)
        self.conversation.push(Turn.model(generation.text))

        rows = [
            Row(page=page_number, index=i, values=values)
            for i, values in enumerate(items, start=1)
        ]
        self.sheet.extend(rows)

        logger.info(f"Extracted {len(rows)} rows from page {page_number}")
        return rows
