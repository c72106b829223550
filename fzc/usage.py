"""Per-command invocation counters used to boost ranking"""

import json
import logging

from fzc.config import config_dir

logger = logging.getLogger(__name__)

USAGE_FILE_NAME = 'usage.json'


def default_usage_path():
    return config_dir() / USAGE_FILE_NAME


class UsageStore:
    """Usage counters keyed by "{provider}::{name}", rewritten after every run"""

    def __init__(self, path=None, counts=None):
        self.path = path
        self.counts = dict(counts or {})

    @classmethod
    def load(cls, path):
        """Load usage statistics; a missing or corrupt file gives an empty store"""
        store = cls(path)
        if path is None or not path.exists():
            return store

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable usage file %s: %s", path, e)
            return store

        counts = data.get('counts') if isinstance(data, dict) else None
        if not isinstance(counts, dict):
            return store

        for key, value in counts.items():
            # bool is an int subclass, keep it out
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                store.counts[str(key)] = value
        return store

    def count(self, key):
        return self.counts.get(key, 0)

    def record(self, key):
        """Update usage statistics for a command and persist them"""
        self.counts[key] = self.counts.get(key, 0) + 1
        self.save()

    def save(self):
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump({'counts': self.counts}, f, indent=2, sort_keys=True)
        except OSError as e:
            # Save errors never fail a run
            logger.warning("Could not save usage file %s: %s", self.path, e)
