import logging
import json
import random
import re
import time
import uuid
from typing import Any, Dict, Iterable, List, Optional

import requests

logger = logging.getLogger(__name__)

USER_AGENT = "Pokemon Walkthrough Project Data Validator (Educational Use)"


def build_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT})
    return session


def wiki_title(name: str) -> str:
    """Return the Bulbapedia article title for a Pokémon name."""
    return f"{name.strip().replace(' ', '_')}_(Pokémon)"


def dex_number(pokemon_id: str) -> str:
    """Zero-pad a Pokédex id for Serebii URLs (``"1"`` -> ``"001"``)."""
    digits = re.sub(r"\D", "", str(pokemon_id))
    return digits.zfill(3) if digits else str(pokemon_id)


def first_int(text: str) -> Optional[int]:
    match = re.search(r"\d+", text.replace(",", ""))
    return int(match.group()) if match else None


def _record(metrics: Optional[Dict[str, Any]], latency: float, failed: bool) -> None:
    if metrics is None:
        return
    metrics.setdefault("latencies", []).append(latency)
    metrics["requests"] = metrics.get("requests", 0) + 1
    if failed:
        metrics["errors"] = metrics.get("errors", 0) + 1


def safe_request(
    url: str,
    retries: int = 3,
    session: Optional[requests.Session] = None,
    delay: float = 1.0,
    metrics: Optional[Dict[str, Any]] = None,
    timeout: float = 10.0,
) -> requests.Response:
    """GET *url* with retries, exponential backoff and JSON request logs.

    ``timeout`` bounds every single attempt so a hung wiki never blocks a
    validation batch.  HTTP 429 responses and connection failures are retried
    until ``retries`` is exhausted; other HTTP errors are raised immediately.
    """
    sess = session or build_session()
    backoff = delay
    for attempt in range(1, retries + 1):
        request_id = uuid.uuid4().hex[:8]
        start = time.time()
        try:
            response = sess.get(url, timeout=timeout)
        except requests.RequestException as exc:
            latency = time.time() - start
            _record(metrics, latency, failed=True)
            logger.warning(
                json.dumps(
                    {
                        "event": "request_error",
                        "url": url,
                        "attempt": attempt,
                        "error": str(exc),
                        "latency": round(latency, 2),
                        "request_id": request_id,
                    }
                )
            )
            if attempt == retries:
                raise
        else:
            latency = time.time() - start
            throttled = response.status_code == 429
            _record(metrics, latency, failed=throttled)
            logger.info(
                json.dumps(
                    {
                        "event": "request",
                        "url": url,
                        "status": response.status_code,
                        "attempt": attempt,
                        "latency": round(latency, 2),
                        "request_id": request_id,
                    }
                )
            )
            if not throttled:
                response.raise_for_status()
                return response
        time.sleep(backoff + random.uniform(0, delay))
        backoff *= 2
    raise requests.RequestException(f"Failed to fetch {url} after {retries} attempts")


# Generation I effort values; Sp. Atk and Sp. Def collapse into Special.
EV_STATS = ["hp", "attack", "defense", "speed", "special"]
_EV_PATTERN = re.compile(
    r"(\d+)\s*(hp|attack|defense|speed|special(?:\s+(?:attack|defense))?|sp\.?\s*atk|sp\.?\s*def|atk|def)\b",
    re.IGNORECASE,
)
_EV_SHORT = {"atk": "attack", "def": "defense"}
TM_PATTERN = re.compile(r"^(TM|HM)\d{2}$")
_START_LEVELS = {"Start", "—", "-", "--"}


def clean_text(text: str) -> str:
    return " ".join(text.split())


def parse_effort_values(text: str) -> Optional[Dict[str, int]]:
    """Parse an EV yield such as ``"1 Sp. Atk"`` into all five Gen I stats.

    Returns ``None`` when no stat yields any effort value.
    """
    values = dict.fromkeys(EV_STATS, 0)
    for amount, stat in _EV_PATTERN.findall(text):
        stat = stat.lower()
        key = stat if stat in values else _EV_SHORT.get(stat, "special")
        values[key] = max(values[key], int(amount))
    return values if any(values.values()) else None


def parse_level(text: str) -> Optional[int]:
    text = text.strip()
    if text in _START_LEVELS:
        return 0
    return int(text) if text.isdigit() else None


def learnset_from_rows(rows: Iterable[List[str]]) -> List[Dict[str, Any]]:
    """Build ``{"level", "attack_name"}`` entries from table rows.

    The first cell holds the level; the move is the first later cell that is
    not another level column.  Header and description rows are skipped.
    """
    learnset = []
    for cells in rows:
        if len(cells) < 2:
            continue
        level = parse_level(cells[0])
        if level is None:
            continue
        move = next((c for c in cells[1:] if c and parse_level(c) is None), None)
        if move:
            learnset.append({"level": level, "attack_name": move})
    return learnset


def tm_codes(rows: Iterable[List[str]], columns: int = 2) -> List[str]:
    """Collect ``TM01``/``HM05`` codes found in the first *columns* cells."""
    codes = []
    for cells in rows:
        code = next((c for c in cells[:columns] if TM_PATTERN.match(c)), None)
        if code and code not in codes:
            codes.append(code)
    return codes
