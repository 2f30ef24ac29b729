import json
import logging
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


class HeadteacherDirectory:
    """Class number -> head teacher, loaded from a JSON list of {"class", "headteacher"}."""

    def __init__(self, data_file: Optional[str] = None, default_format: str = "{classNum}班班主任"):
        self.data_file = data_file
        self.default_format = default_format
        self._entries: Optional[List[dict]] = None

    def load(self) -> List[dict]:
        if self._entries is not None:
            return self._entries

        entries: List[dict] = []
        if self.data_file:
            try:
                raw = json.loads(Path(self.data_file).read_text(encoding="utf-8"))
                entries = [
                    {"class": int(item["class"]), "headteacher": str(item["headteacher"])}
                    for item in raw
                ]
                logger.info("Loaded %d classes from %s", len(entries), self.data_file)
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.error("Failed to load class data from %s: %s", self.data_file, e)
                entries = []
        self._entries = entries
        return entries

    def reload(self) -> List[dict]:
        self._entries = None
        return self.load()

    def get_headteacher(self, class_id: int) -> str:
        for item in self.load():
            if item["class"] == class_id:
                return item["headteacher"]
        return self.default_format.replace("{classNum}", str(class_id))

    def all_classes(self) -> List[dict]:
        return sorted(self.load(), key=lambda item: item["class"])
