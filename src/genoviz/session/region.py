"""Genomic region value type and ``chrom:start-end`` parsing."""

from __future__ import annotations

import numbers
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Union

from genoviz.errors import RegionParseError

_REGION_RE = re.compile(r"^(?P<chrom>[^:\s]+):(?P<start>\d+)-(?P<end>\d+)$")
_SEPARATORS_RE = re.compile(r"[,\s]")


@dataclass(frozen=True)
class GenomicRegion:
    chromosome: str
    start: int
    end: int

    def __post_init__(self) -> None:
        if not isinstance(self.chromosome, str) or not self.chromosome.strip():
            raise RegionParseError(f"chromosome must be a non-empty string, got {self.chromosome!r}")
        for name in ("start", "end"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise RegionParseError(f"{name} must be an integer, got {value!r}")
            object.__setattr__(self, name, int(value))
        object.__setattr__(self, "chromosome", self.chromosome.strip())
        if self.start < 0:
            raise RegionParseError(f"start must be >= 0, got {self.start}")
        if self.start >= self.end:
            raise RegionParseError(f"start ({self.start}) must be less than end ({self.end})")

    @property
    def width(self) -> int:
        return self.end - self.start

    def to_locus(self) -> str:
        return f"{self.chromosome}:{self.start}-{self.end}"

    def to_dict(self) -> Dict[str, Any]:
        return {"chromosome": self.chromosome, "start": self.start, "end": self.end}

    def __str__(self) -> str:
        return self.to_locus()


def parse_region(text: str) -> GenomicRegion:
    """Parse ``chr3:128,079,020-128,331,275`` style strings."""

    if not isinstance(text, str):
        raise RegionParseError(f"region must be a string, got {type(text).__name__}")
    stripped = text.strip()
    chrom, sep, span = stripped.partition(":")
    if not sep:
        raise RegionParseError(f"malformed region {text!r}; expected chromosome:start-end")
    candidate = f"{chrom.strip()}:{_SEPARATORS_RE.sub('', span)}"
    match = _REGION_RE.match(candidate)
    if match is None:
        raise RegionParseError(f"malformed region {text!r}; expected chromosome:start-end")
    return GenomicRegion(
        chromosome=match.group("chrom"),
        start=int(match.group("start")),
        end=int(match.group("end")),
    )


def region_from_mapping(data: Mapping[str, Any]) -> GenomicRegion:
    chromosome = data.get("chromosome", data.get("chrom", data.get("chr")))
    start = data.get("start")
    end = data.get("end")
    if chromosome is None or start is None or end is None:
        raise RegionParseError(f"region mapping needs chromosome/start/end, got {dict(data)!r}")
    if isinstance(start, str):
        start = _parse_coordinate(start)
    if isinstance(end, str):
        end = _parse_coordinate(end)
    return GenomicRegion(chromosome=str(chromosome), start=start, end=end)


def coerce_region(target: Union[GenomicRegion, str, Mapping[str, Any]]) -> GenomicRegion:
    if isinstance(target, GenomicRegion):
        return target
    if isinstance(target, str):
        return parse_region(target)
    if isinstance(target, Mapping):
        return region_from_mapping(target)
    raise RegionParseError(f"cannot interpret {type(target).__name__} as a genomic region")


def _parse_coordinate(text: str) -> int:
    cleaned = _SEPARATORS_RE.sub("", text)
    if not cleaned.isdigit():
        raise RegionParseError(f"malformed coordinate {text!r}")
    return int(cleaned)


__all__ = ["GenomicRegion", "coerce_region", "parse_region", "region_from_mapping"]
