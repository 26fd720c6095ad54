"""Postal-code and place autocomplete over the static postal table."""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
import pandas as pd
from campaign_site.models.location import LocationResult

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
MAX_LIMIT = 20
MAX_MUNICIPALITIES = 4


class LocationIndex:
    """In-memory lookup over `postnummer.json`."""

    def __init__(self, data: dict):
        self.orter: list[dict] = data.get("orter", [])
        self.postnummer_lookup: dict[str, dict] = data.get("postnummerLookup", {})
        self.kommuner: list[str] = data.get("kommuner", [])

    @classmethod
    def from_file(cls, path: Path) -> "LocationIndex":
        if not path.exists():
            logger.warning(f"Postal data not found at {path}, location search disabled")
            return cls({})

        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        logger.info(f"Loaded {len(data.get('postnummerLookup', {}))} postal codes")
        return cls(data)

    def search(self, query: str, limit: int = 10) -> list[LocationResult]:
        """
        Search postal codes or place names.

        Args:
            query: Free text; digits (spaces allowed) search postal codes
            limit: Maximum number of results (capped at 20)

        Returns:
            Matching locations, municipalities first for name searches
        """
        query = (query or "").strip()
        limit = min(limit, MAX_LIMIT)

        if len(query) < MIN_QUERY_LENGTH:
            return []

        clean_query = re.sub(r"\s", "", query)
        if clean_query.isdigit():
            return self._search_postal_codes(clean_query, limit)

        return self._search_places(query.lower(), limit)

    def _search_postal_codes(self, prefix: str, limit: int) -> list[LocationResult]:
        results = []
        for postnummer, entry in self.postnummer_lookup.items():
            if len(results) >= limit:
                break
            if not postnummer.startswith(prefix):
                continue

            formatted = f"{postnummer[:3]} {postnummer[3:]}"
            results.append(
                LocationResult(
                    type="postnummer",
                    display=f"{formatted} {entry['ort']}",
                    ort=entry["ort"],
                    kommun=entry["kommun"],
                    kommun_kod=entry["kommunKod"],
                    lan=entry["lan"],
                    postnummer=postnummer,
                )
            )
        return results

    def _search_places(self, lower_query: str, limit: int) -> list[LocationResult]:
        # One entry per municipality code, preferring the one named after the municipality
        municipalities: dict[str, dict] = {}
        for entry in self.orter:
            if entry["kommun"].lower().startswith(lower_query):
                existing = municipalities.get(entry["kommunKod"])
                if existing is None or entry["ort"] == entry["kommun"]:
                    municipalities[entry["kommunKod"]] = entry

        results = [
            LocationResult(
                type="ort",
                display=entry["kommun"],
                ort=entry["kommun"],
                kommun=entry["kommun"],
                kommun_kod=entry["kommunKod"],
                lan=entry["lan"],
                postnummer=entry.get("examplePostnummer"),
            )
            for entry in list(municipalities.values())[:MAX_MUNICIPALITIES]
        ]

        for entry in self.orter:
            if len(results) >= limit:
                break
            if entry["ort"].lower().startswith(lower_query) and entry["ort"] != entry["kommun"]:
                results.append(
                    LocationResult(
                        type="ort",
                        display=f"{entry['ort']}, {entry['kommun']}",
                        ort=entry["ort"],
                        kommun=entry["kommun"],
                        kommun_kod=entry["kommunKod"],
                        lan=entry["lan"],
                        postnummer=entry.get("examplePostnummer"),
                    )
                )

        return results


def _title_case(name: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in name.lower().split(" "))


def build_postal_data(csv_source, generated_at: Optional[datetime] = None) -> dict:
    """
    Convert the raw postal CSV into the lookup table used by LocationIndex.

    Args:
        csv_source: Path or file-like object with columns
            postnummer, ort, kommun, kommunKod, lan
        generated_at: Timestamp recorded in the metadata block

    Returns:
        Dict with orter, postnummerLookup, kommuner and meta keys
    """
    df = pd.read_csv(csv_source, dtype=str).dropna(subset=["postnummer", "ort", "kommun", "kommunKod", "lan"])
    df = df.apply(lambda column: column.str.strip())
    df["kommun"] = df["kommun"].apply(_title_case)

    orter_df = (
        df.drop_duplicates(subset=["ort", "kommun"], keep="first")
        .rename(columns={"postnummer": "examplePostnummer"})
        .sort_values("ort", key=lambda s: s.str.lower())
    )
    orter = orter_df[["ort", "kommun", "kommunKod", "lan", "examplePostnummer"]].to_dict(orient="records")

    postnummer_lookup = {
        row["postnummer"]: {"ort": row["ort"], "kommun": row["kommun"], "kommunKod": row["kommunKod"], "lan": row["lan"]}
        for row in df.to_dict(orient="records")
    }

    kommuner = sorted(df["kommun"].unique().tolist(), key=str.lower)

    generated_at = generated_at or datetime.now(timezone.utc)
    return {
        "orter": orter,
        "postnummerLookup": postnummer_lookup,
        "kommuner": kommuner,
        "meta": {
            "totalPostnummer": len(df),
            "totalOrter": len(orter),
            "totalKommuner": len(kommuner),
            "generatedAt": generated_at.isoformat(),
        },
    }
