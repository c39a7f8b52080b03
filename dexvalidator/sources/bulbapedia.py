import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from ..helpers import (
    clean_text,
    first_int,
    learnset_from_rows,
    parse_effort_values,
    safe_request,
    tm_codes,
    wiki_title,
)
from ..models import SourceData

logger = logging.getLogger(__name__)

SOURCE_NAME = "bulbapedia"
SITE_URL = "https://bulbapedia.bulbagarden.net"
BASE_URL = f"{SITE_URL}/wiki"

STAT_KEYS = {
    "HP": "hp",
    "Attack": "attack",
    "Defense": "defense",
    "Sp. Atk": "specialAttack",
    "Sp. Def": "specialDefense",
    "Speed": "speed",
}
HEADINGS = ["h2", "h3", "h4"]
# Follow-up pages linked from the Learnset section, per field.
LEARNSET_SECTIONS = {"learnset": "By leveling up", "tmCompatibility": "By TM"}

_EVOLUTION_TARGET = r"\s*→\s*(?:First|Second)\s+Evolution\s+([A-Z][\w'.-]*)"
LEVEL_EVOLUTION = re.compile(r"Level\s+(\d+)" + _EVOLUTION_TARGET)
STONE_EVOLUTION = re.compile(r"(Fire|Water|Thunder|Leaf|Moon|Sun) Stone" + _EVOLUTION_TARGET)


def _labelled_cell(soup: BeautifulSoup, label: str):
    """Return the table cell that follows an infobox *label*."""
    tag = soup.find(["a", "b", "th"], string=lambda s: s and s.strip() == label)
    return tag.find_next("td") if tag else None


def _heading(soup: BeautifulSoup, text: str):
    return soup.find(HEADINGS, string=lambda s: s and text in s)


def _section_table(soup: BeautifulSoup, text: str):
    heading = _heading(soup, text)
    return heading.find_next("table") if heading else None


def parse_base_stats(soup: BeautifulSoup) -> Dict[str, int]:
    stats: Dict[str, int] = {}
    for th in soup.find_all("th"):
        label = th.find("span") or th.find("a")
        if not label:
            continue
        key = STAT_KEYS.get(label.get_text(strip=True).rstrip(":"))
        value = th.find("div", string=re.compile(r"^\s*\d+\s*$"))
        if key and value and key not in stats:
            stats[key] = int(value.get_text(strip=True))
    # Generation I pages list the shared Special stat twice.
    if stats.get("specialAttack") and stats.get("specialAttack") == stats.get("specialDefense"):
        stats["special"] = stats.pop("specialAttack")
        stats.pop("specialDefense")
    return stats


def parse_evolution_chain(soup: BeautifulSoup) -> List[Dict[str, Any]]:
    """Evolution steps from the "Evolution data" table.

    ``evolves_to`` holds the target's name; the fetcher maps it to a dex id.
    """
    table = _section_table(soup, "Evolution data")
    if table is None:
        return []
    text = table.get_text(" ", strip=True)
    chain = [
        {"level": int(level), "evolves_to": name}
        for level, name in LEVEL_EVOLUTION.findall(text)
    ]
    chain += [
        {"item": f"{stone} Stone", "evolves_to": name}
        for stone, name in STONE_EVOLUTION.findall(text)
    ]
    return chain


def parse_effort_yield(soup: BeautifulSoup) -> Optional[Dict[str, int]]:
    tables = [
        t for t in soup.find_all("table")
        if re.search(r"Effort points|EV yield", t.get_text(" ", strip=True))
    ]
    # The innermost matching table holds only the yield.
    return parse_effort_values(tables[-1].get_text(" ", strip=True)) if tables else None


def parse_pokedex_entry(soup: BeautifulSoup) -> Optional[str]:
    table = _section_table(soup, "Pokédex entries")
    if table is None:
        return None
    for td in table.find_all("td"):
        text = clean_text(td.get_text(" ", strip=True))
        if 30 < len(text) < 300:
            return text
    return None


def generation_links(html: str) -> Dict[str, str]:
    """Map ``learnset`` / ``tmCompatibility`` to their Generation I page paths."""
    soup = BeautifulSoup(html, "html.parser")
    links = {}
    for field, section in LEARNSET_SECTIONS.items():
        table = _section_table(soup, section)
        if table is None:
            continue
        link = table.find("a", string=lambda s: s and s.strip() == "I")
        if link and link.get("href"):
            links[field] = link["href"]
    return links


def parse_learnset_page(html: str) -> List[Dict[str, Any]]:
    soup = BeautifulSoup(html, "html.parser")
    table = _section_table(soup, "By leveling up")
    if table is None:
        return []
    table = table.find("table", class_="sortable") or table
    for hidden in table.select('span[style*="display:none"]'):
        hidden.decompose()
    rows = [
        [td.get_text(" ", strip=True) for td in tr.find_all("td", recursive=False)]
        for tr in table.find_all("tr")
    ]
    return learnset_from_rows(rows)


def parse_tm_page(html: str) -> List[str]:
    soup = BeautifulSoup(html, "html.parser")
    for table in soup.find_all("table"):
        text = table.get_text(" ", strip=True)
        if "TM" not in text or ("Move" not in text and "Type" not in text):
            continue
        rows = [
            [td.get_text(" ", strip=True) for td in tr.find_all("td", recursive=False)]
            for tr in table.find_all("tr")
        ]
        codes = tm_codes(rows, columns=2)
        if codes:
            return codes
    return []


def parse_bulbapedia_page(html: str) -> Dict[str, Any]:
    """Extract validated fields from a Bulbapedia Pokémon article."""
    soup = BeautifulSoup(html, "html.parser")
    data: Dict[str, Any] = {}

    heading = soup.find("h1", class_="firstHeading")
    if heading:
        data["name"] = heading.get_text(strip=True).split("(")[0].strip()

    category = soup.find("a", title="Pokémon category")
    if category:
        data["species"] = category.get_text(" ", strip=True)

    infobox = soup.find(class_="infobox") or soup
    types = []
    for link in infobox.find_all("a", title=re.compile(r"\(type\)$")):
        name = link["title"].replace("(type)", "").strip()
        if name != "Unknown" and name not in types:
            types.append(name)
    if types:
        data["types"] = types

    text = infobox.get_text(" ", strip=True)
    height = re.search(r"(\d+(?:\.\d+)?)\s*m(?!\w)", text)
    if height:
        data["height"] = float(height.group(1))
    weight = re.search(r"(\d+(?:\.\d+)?)\s*kg(?!\w)", text)
    if weight:
        data["weight"] = float(weight.group(1))

    for label, key in (("Catch rate", "catchRate"), ("Base experience yield", "baseExp")):
        cell = _labelled_cell(soup, label)
        value = first_int(cell.get_text(" ", strip=True)) if cell else None
        if value is not None:
            data[key] = value

    growth = _labelled_cell(soup, "Leveling rate")
    if growth and growth.get_text(strip=True):
        data["growthRate"] = growth.get_text(" ", strip=True)

    stats = parse_base_stats(soup)
    if stats:
        data["baseStats"] = stats

    effort = parse_effort_yield(soup)
    if effort:
        data["effortValues"] = effort
    chain = parse_evolution_chain(soup)
    if chain:
        data["evolutionChain"] = chain
    entry = parse_pokedex_entry(soup)
    if entry:
        data["pokedexEntry"] = entry
    return data


PAGE_PARSERS = {"learnset": parse_learnset_page, "tmCompatibility": parse_tm_page}


def fetch(
    name: str,
    session: Optional[requests.Session] = None,
    metrics: Optional[Dict[str, Any]] = None,
    *,
    timeout: float = 10.0,
    retries: int = 3,
) -> SourceData:
    """Fetch and parse the Bulbapedia article for *name*.

    The Generation I learnset and TM pages linked from the article are
    fetched as well.  Failures are recorded on the returned
    :class:`SourceData` instead of raised so the other source can still be
    used; a failed follow-up page only leaves its field out.
    """
    url = f"{BASE_URL}/{wiki_title(name)}"
    logger.info("Fetching from Bulbapedia: %s", name)
    kwargs = {"retries": retries, "session": session, "metrics": metrics, "timeout": timeout}
    try:
        response = safe_request(url, **kwargs)
    except requests.RequestException as e:
        logger.error("Bulbapedia fetch failed for %s: %s", name, e)
        return SourceData(source=SOURCE_NAME, data=None, error=str(e))

    data = parse_bulbapedia_page(response.text)
    for field, path in generation_links(response.text).items():
        try:
            page = safe_request(urljoin(SITE_URL, path), **kwargs)
        except requests.RequestException as e:
            logger.warning("Bulbapedia %s page failed for %s: %s", field, name, e)
            continue
        values = PAGE_PARSERS[field](page.text)
        if values:
            data[field] = values
    return SourceData(source=SOURCE_NAME, data=data)
