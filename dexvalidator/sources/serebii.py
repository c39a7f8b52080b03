import logging
import re
from typing import Any, Dict, List, Optional

import requests
from bs4 import BeautifulSoup

from ..helpers import (
    clean_text,
    dex_number,
    learnset_from_rows,
    parse_effort_values,
    safe_request,
    tm_codes,
)
from ..models import SourceData

logger = logging.getLogger(__name__)

SOURCE_NAME = "serebii"
BASE_URL = "https://www.serebii.net/pokedex"

# Generation I pages list a single Special stat.
STAT_ORDER = ["hp", "attack", "defense", "special", "speed"]
MODERN_STAT_ORDER = ["hp", "attack", "defense", "specialAttack", "specialDefense", "speed"]
GROWTH_RATES = ["Medium Fast", "Medium Slow", "Fast", "Slow", "Erratic", "Fluctuating"]
STONES = {
    "fire": "Fire Stone",
    "water": "Water Stone",
    "thunder": "Thunder Stone",
    "leaf": "Leaf Stone",
    "moon": "Moon Stone",
    "sun": "Sun Stone",
}
# Cells mentioning these belong to location tables, not Pokedex text.
LOCATION_WORDS = ("Route", "Cave", "Surf", "Level")


def _cells(table) -> List[str]:
    return [td.get_text(" ", strip=True) for td in table.find_all("td")]


def _rows(table) -> List[List[str]]:
    return [
        [td.get_text(" ", strip=True) for td in tr.find_all("td", recursive=False)]
        for tr in table.find_all("tr")
    ]


def _header_value(table, header: str) -> Optional[str]:
    """Return the cell below *header* in a Serebii header/value table."""
    rows = table.find_all("tr")
    for i, row in enumerate(rows[:-1]):
        headers = [c.get_text(" ", strip=True) for c in row.find_all("td")]
        if header in headers:
            values = rows[i + 1].find_all("td")
            idx = headers.index(header)
            if idx < len(values):
                return values[idx].get_text(" ", strip=True)
    return None


def _section_table(soup: BeautifulSoup, heading: str):
    """First ``dextable`` whose heading row mentions *heading*."""
    for table in soup.find_all("table", class_="dextable"):
        first = table.find("tr")
        if first is not None and heading in first.get_text(" ", strip=True):
            return table
    return None


def parse_learnset(soup: BeautifulSoup) -> List[Dict[str, Any]]:
    table = _section_table(soup, "Generation I Level Up")
    if table is None:
        return []
    learnset = learnset_from_rows(_rows(table))
    if not learnset:
        # Older layouts keep the moves in the table after the heading.
        following = table.find_next_sibling("table")
        if following is not None:
            learnset = learnset_from_rows(_rows(following))
    return learnset


def parse_tm_compatibility(soup: BeautifulSoup) -> List[str]:
    table = _section_table(soup, "TM & HM Attacks")
    return tm_codes(_rows(table), columns=1) if table is not None else []


def parse_evolution_chain(soup: BeautifulSoup) -> List[Dict[str, Any]]:
    """Read evolution steps from the icons under "Evolutionary Chain".

    Level evolutions become ``{"level", "evolves_to"}`` and stone evolutions
    ``{"item", "evolves_to"}``, with ``evolves_to`` a zero padded dex number.
    """
    cell = soup.find("td", string=re.compile("Evolutionary Chain"))
    row = cell.find_parent("tr") if cell is not None else None
    row = row.find_next_sibling("tr") if row is not None else None
    if row is None:
        return []
    images = row.find_all("img")
    chain = []
    for icon, target in zip(images, images[1:]):
        src = icon.get("src", "")
        if "/evoicon/" not in src:
            continue
        link = target.find_parent("a")
        match = re.search(r"/pokedex/(\d+)\.shtml", link.get("href", "") if link else "")
        if not match:
            continue
        level = re.search(r"/evoicon/l(\d+)\.png", src)
        if level:
            chain.append({"level": int(level.group(1)), "evolves_to": dex_number(match.group(1))})
            continue
        stone = next((name for key, name in STONES.items() if key in src), None)
        if stone:
            chain.append({"item": stone, "evolves_to": dex_number(match.group(1))})
    return chain


def parse_pokedex_entry(soup: BeautifulSoup) -> Optional[str]:
    for table in soup.find_all("table", class_="dextable"):
        heading = table.find("tr")
        if heading is None:
            continue
        title = heading.get_text(" ", strip=True)
        if "Flavor Text" not in title and "Description" not in title:
            continue
        for td in table.find_all("td"):
            text = clean_text(td.get_text(" ", strip=True))
            if 30 < len(text) < 300 and not any(w in text for w in LOCATION_WORDS):
                return text
    return None


def parse_serebii_page(html: str) -> Dict[str, Any]:
    """Extract validated fields from a Serebii Pokédex page."""
    soup = BeautifulSoup(html, "html.parser")
    data: Dict[str, Any] = {}

    for table in soup.find_all("table", class_="dextable"):
        text = table.get_text(" ", strip=True)

        if "Classification" in text and "species" not in data:
            species = _header_value(table, "Classification")
            if species:
                data["species"] = species
            height = _header_value(table, "Height")
            match = re.search(r"(\d+(?:\.\d+)?)\s*m\b", height or "")
            if match:
                data["height"] = float(match.group(1))
            weight = _header_value(table, "Weight")
            match = re.search(r"(\d+(?:\.\d+)?)\s*kg\b", weight or "")
            if match:
                data["weight"] = float(match.group(1))
            rate = _header_value(table, "Capture Rate")
            if rate and rate.split()[0].isdigit():
                data["catchRate"] = int(rate.split()[0])

        if "Experience Growth" in text and "growthRate" not in data:
            growth = _header_value(table, "Experience Growth") or ""
            for name in GROWTH_RATES:
                if name in growth:
                    data["growthRate"] = name
                    break

        if "Effort Values Earned" in text and "effortValues" not in data:
            effort = parse_effort_values(_header_value(table, "Effort Values Earned") or "")
            if effort:
                data["effortValues"] = effort

        if "Base Stats" in text and "baseStats" not in data:
            for row in table.find_all("tr"):
                cells = _cells(row)
                if cells and cells[0].startswith("Base Stats"):
                    numbers = [int(c) for c in cells[1:] if c.isdigit()]
                    for order in (STAT_ORDER, MODERN_STAT_ORDER):
                        if len(numbers) == len(order):
                            data["baseStats"] = dict(zip(order, numbers))
                    break

    types = []
    for img in soup.select("td.cen a img[src*='/type/']"):
        name = img["src"].rsplit("/", 1)[-1].split(".")[0].capitalize()
        if name not in types:
            types.append(name)
    if types:
        data["types"] = types

    learnset = parse_learnset(soup)
    if learnset:
        data["learnset"] = learnset
    tms = parse_tm_compatibility(soup)
    if tms:
        data["tmCompatibility"] = tms
    chain = parse_evolution_chain(soup)
    if chain:
        data["evolutionChain"] = chain
    entry = parse_pokedex_entry(soup)
    if entry:
        data["pokedexEntry"] = entry
    return data


def fetch(
    pokemon_id: str,
    session: Optional[requests.Session] = None,
    metrics: Optional[Dict[str, Any]] = None,
    *,
    timeout: float = 10.0,
    retries: int = 3,
) -> SourceData:
    """Fetch and parse the Serebii page for a Pokédex number."""
    url = f"{BASE_URL}/{dex_number(pokemon_id)}.shtml"
    logger.info("Fetching from Serebii: Pokemon #%s", pokemon_id)
    try:
        response = safe_request(
            url, retries=retries, session=session, metrics=metrics, timeout=timeout
        )
        return SourceData(source=SOURCE_NAME, data=parse_serebii_page(response.text))
    except requests.RequestException as e:
        logger.error("Serebii fetch failed for #%s: %s", pokemon_id, e)
        return SourceData(source=SOURCE_NAME, data=None, error=str(e))
