"""
Evaluation set: gold-ranked leads plus their cached embeddings.

CSV columns: Full Name, Title, Company, LI, Employee Range, Rank.
Rows without a numeric Rank >= 1 are skipped. The global gold order sorts
by company ("(No company)" when blank), then the per-company Rank, then
full name; gold ranks are 1..N in that order.

Lead embeddings are expensive to recompute, so they live in a JSON cache
keyed by "full name|company" and tagged with the embedding provider. A
cache hit requires every lead of the set to be present.
"""

import csv
import json
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from leadrank.common.config import Config
from leadrank.common.exceptions import EmbeddingError
from leadrank.common.field_aliases import lead_identity
from leadrank.common.logger import get_logger
from leadrank.common.types import EmbeddingVector, EvalLead, Lead
from leadrank.embeddings.gateway import EmbeddingGateway
from leadrank.ranking.lead_text import lead_to_text

logger = get_logger(__name__, layer="eval_set")

EVAL_LEAD_COLUMNS = ("Full Name", "Title", "Company", "LI", "Employee Range")
NO_COMPANY = "(No company)"
EVAL_EMBED_CHUNK_SIZE = 12

_LEADING_INT = re.compile(r"^\s*(\d+)")


def _parse_rank(raw: Optional[str]) -> Optional[int]:
    match = _LEADING_INT.match(raw or "")
    if not match:
        return None
    rank = int(match.group(1))
    return rank if rank >= 1 else None


def row_to_lead(row: Dict[str, str]) -> Lead:
    """Keep the descriptive eval columns (trimmed, non-empty); Rank is dropped."""
    lead: Lead = {}
    for column in EVAL_LEAD_COLUMNS:
        value = row.get(column)
        if value is None:
            value = row.get(column.lower())
        if value is not None and str(value).strip():
            lead[column] = str(value).strip()
    return lead


def parse_eval_rows(rows: Sequence[Dict[str, str]]) -> List[EvalLead]:
    """Build gold-ranked EvalLeads from parsed CSV rows."""
    ranked = []
    for row in rows:
        rank = _parse_rank(row.get("Rank") if row.get("Rank") is not None else row.get("rank"))
        if rank is None:
            continue
        lead = row_to_lead(row)
        company = lead.get("Company", "") or NO_COMPANY
        full_name = lead.get("Full Name", "")
        ranked.append((company.casefold(), company, rank, full_name.casefold(), full_name, lead))

    ranked.sort(key=lambda item: item[:5])
    return [EvalLead(lead=item[5], gold_rank=position + 1) for position, item in enumerate(ranked)]


def load_eval_set(path: Optional[str] = None) -> List[EvalLead]:
    """
    Load the gold-ranked evaluation set.

    Args:
        path: CSV path (default: Config.EVAL_CSV_PATH)

    Raises:
        FileNotFoundError: The CSV does not exist
    """
    csv_path = Path(path or Config.EVAL_CSV_PATH)
    with csv_path.open(newline="", encoding="utf-8-sig") as f:
        rows = [row for row in csv.DictReader(f) if any((v or "").strip() for v in row.values() if isinstance(v, str))]
    eval_leads = parse_eval_rows(rows)
    logger.info(f"Loaded {len(eval_leads)} ranked eval leads from {csv_path} ({len(rows)} rows)")
    return eval_leads


class EvalEmbeddingCache:
    """
    JSON file cache of evaluation-lead embeddings.

    Call ensure_ready() once before first use; it creates the cache
    directory and loads the file, and is a no-op afterwards.

    Usage:
        cache = EvalEmbeddingCache(Config.EVAL_EMBEDDINGS_PATH, provider="gemini")
        cache.ensure_ready()
        vectors = cache.load(eval_leads)  # None on any miss
    """

    def __init__(self, path: Optional[str] = None, provider: Optional[str] = None):
        self.path = Path(path or Config.EVAL_EMBEDDINGS_PATH)
        self.provider = provider or Config.get_embedding_provider()
        self._entries: Dict[str, Dict] = {}
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    def ensure_ready(self) -> None:
        if self._ready:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists():
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
            self._entries = data.get("embeddings", {}) if isinstance(data, dict) else {}
            logger.debug(f"Eval embedding cache loaded: {len(self._entries)} entries")
        self._ready = True

    def _require_ready(self) -> None:
        if not self._ready:
            raise RuntimeError("EvalEmbeddingCache.ensure_ready() must be called before use")

    def load(self, eval_leads: Sequence[EvalLead]) -> Optional[List[EmbeddingVector]]:
        """Vectors aligned with eval_leads, or None unless every lead is cached."""
        self._require_ready()
        vectors = []
        for eval_lead in eval_leads:
            entry = self._entries.get(lead_identity(eval_lead.lead))
            if not entry or entry.get("provider") != self.provider or not entry.get("embedding"):
                return None
            vectors.append(entry["embedding"])
        return vectors

    def store(self, eval_leads: Sequence[EvalLead], embeddings: Sequence[EmbeddingVector]) -> None:
        """Upsert embeddings by lead identity and write the file."""
        self._require_ready()
        if len(eval_leads) != len(embeddings):
            raise ValueError(
                f"eval_leads and embeddings length mismatch ({len(eval_leads)} != {len(embeddings)})"
            )
        updated_at = datetime.now(timezone.utc).isoformat()
        for eval_lead, vector in zip(eval_leads, embeddings):
            self._entries[lead_identity(eval_lead.lead)] = {
                "provider": self.provider,
                "gold_rank": eval_lead.gold_rank,
                "embedding": list(vector),
                "updated_at": updated_at,
            }

        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"embeddings": self._entries}, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise
        logger.info(f"Stored {len(embeddings)} eval embeddings in {self.path}")


async def embed_eval_leads(
    gateway: EmbeddingGateway,
    eval_leads: Sequence[EvalLead],
    chunk_size: int = EVAL_EMBED_CHUNK_SIZE,
) -> List[EmbeddingVector]:
    """
    Embed evaluation leads in small sequential chunks.

    The gateway already retries a timed-out chunk one lead at a time, so a
    timeout that reaches this loop is final.

    Raises:
        EmbeddingError: With .batch_index naming the failing chunk
    """
    texts = [lead_to_text(e.lead) for e in eval_leads]
    vectors: List[EmbeddingVector] = []
    for index, start in enumerate(range(0, len(texts), chunk_size)):
        chunk = texts[start:start + chunk_size]
        try:
            vectors.extend(await gateway.embed_batch(chunk))
        except EmbeddingError as e:
            e.batch_index = index
            raise
    return vectors


async def load_eval_embeddings(
    gateway: EmbeddingGateway,
    eval_leads: Sequence[EvalLead],
    cache: Optional[EvalEmbeddingCache] = None,
) -> Tuple[List[EmbeddingVector], bool]:
    """
    Eval-lead embeddings from the cache, computing and storing them on a miss.

    Returns:
        (vectors aligned with eval_leads, True when served from cache)
    """
    if cache is not None:
        cache.ensure_ready()
        cached = cache.load(eval_leads)
        if cached is not None:
            logger.info(f"Using cached embeddings for {len(cached)} eval leads")
            return cached, True

    vectors = await embed_eval_leads(gateway, eval_leads)
    if cache is not None:
        cache.store(eval_leads, vectors)
    return vectors, False
