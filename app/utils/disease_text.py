"""Pull structured disease information out of free text.

Generative providers do not always honour a JSON-only instruction, and the
encyclopedic provider only returns a prose summary. ``extract_sections`` walks
the text line by line with a current-section tag; ``keyword_*`` helpers are
the last resort and always return at least one entry.
"""

import re
from typing import Dict, List, Optional, Tuple

DESCRIPTION = "description"
CAUSES = "causes"
SYMPTOMS = "symptoms"
PREVENTION = "prevention"
TREATMENT = "treatment"

LIST_SECTIONS = (CAUSES, SYMPTOMS, PREVENTION, TREATMENT)

# Checked in order; the first section whose keyword appears wins
SECTION_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (CAUSES, ("cause", "reason", "trigger", "pathogen")),
    (SYMPTOMS, ("symptom", "sign")),
    (PREVENTION, ("prevent", "avoid", "control")),
    (TREATMENT, ("treat", "cure", "manage", "remed")),
    (DESCRIPTION, ("description", "overview", "summary")),
)

CAUSE_KEYWORDS = (
    ("fungal", "Fungal infection"),
    ("fungus", "Fungal infection"),
    ("bacterial", "Bacterial infection"),
    ("bacteria", "Bacterial infection"),
    ("viral", "Viral infection"),
    ("virus", "Viral infection"),
    ("weather", "Weather conditions"),
    ("humid", "High humidity"),
    ("moisture", "Excess moisture"),
    ("insect", "Insect vectors"),
)
SYMPTOM_KEYWORDS = (
    ("spots", "Dark spots on leaves"),
    ("yellow", "Yellowing of leaves"),
    ("wilting", "Plant wilting"),
    ("wilt", "Plant wilting"),
    ("lesions", "Lesions on plant tissue"),
    ("rotting", "Rotting of plant tissue"),
    ("decay", "Rotting of plant tissue"),
    ("mold", "Mold growth on leaves"),
    ("curl", "Leaf curling"),
)
PREVENTION_KEYWORDS = (
    ("rotation", "Crop rotation"),
    ("fungicide", "Fungicide application"),
    ("spacing", "Proper plant spacing"),
    ("drainage", "Good drainage"),
    ("resistant", "Resistant varieties"),
    ("sanitation", "Field sanitation"),
)
TREATMENT_KEYWORDS = (
    ("fungicide", "Apply an appropriate fungicide"),
    ("copper", "Copper-based sprays"),
    ("bactericide", "Apply an appropriate bactericide"),
    ("insecticide", "Control insect vectors with insecticide"),
    ("remove", "Remove infected plants"),
    ("prune", "Prune affected leaves"),
)

DEFAULT_CAUSES = ["Environmental factors"]
DEFAULT_SYMPTOMS = ["Visible damage to plant"]
DEFAULT_PREVENTION = ["Good agricultural practices"]
DEFAULT_TREATMENT = ["Consult local agricultural extension"]

_LIST_ITEM = re.compile(r"^\s*(?:[-*•+]|\d+[.)]|[a-zA-Z][.)])\s+(.*)$")
_HEADING_MARKUP = re.compile(r"^[#>\s*_]+|[*_:\s]+$")


def _keyword_sweep(text: str, keywords, default: List[str]) -> List[str]:
    lowered = text.lower()
    found: List[str] = []
    for keyword, entry in keywords:
        if keyword in lowered and entry not in found:
            found.append(entry)
    return found or list(default)


def keyword_causes(text: str) -> List[str]:
    return _keyword_sweep(text, CAUSE_KEYWORDS, DEFAULT_CAUSES)


def keyword_symptoms(text: str) -> List[str]:
    return _keyword_sweep(text, SYMPTOM_KEYWORDS, DEFAULT_SYMPTOMS)


def keyword_prevention(text: str) -> List[str]:
    return _keyword_sweep(text, PREVENTION_KEYWORDS, DEFAULT_PREVENTION)


def keyword_treatment(text: str) -> List[str]:
    return _keyword_sweep(text, TREATMENT_KEYWORDS, DEFAULT_TREATMENT)


KEYWORD_EXTRACTORS = {
    CAUSES: keyword_causes,
    SYMPTOMS: keyword_symptoms,
    PREVENTION: keyword_prevention,
    TREATMENT: keyword_treatment,
}


def match_section(text: str) -> Optional[str]:
    lowered = text.lower()
    for section, keywords in SECTION_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return section
    return None


def _clean(text: str) -> str:
    return _HEADING_MARKUP.sub("", text).strip()


def _split_items(value: str) -> List[str]:
    parts = re.split(r"[;,]\s*", value)
    return [part.strip(" .") for part in parts if part.strip(" .")]


def extract_sections(text: str) -> Dict[str, object]:
    """Line-by-line extraction into description + four lists.

    Rules per non-empty line:
      * list item (bullet or numbered): appended to the current section
      * ``key: value``: key picks the section, value is routed there
      * short line naming a section: switches the current section
      * anything else under the description section extends the description
    Lists that stay empty are filled by the keyword sweep over the whole text.
    """
    sections: Dict[str, List[str]] = {name: [] for name in LIST_SECTIONS}
    description_parts: List[str] = []
    current: Optional[str] = None

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        item = _LIST_ITEM.match(line)
        if item:
            entry = _clean(item.group(1))
            if not entry:
                continue
            # "- Causes: fungus, rain" is a labelled item, not a plain bullet
            if ":" in entry:
                key, _, value = entry.partition(":")
                section = match_section(key)
                if section is not None and value.strip():
                    current = section
                    _route(section, value, sections, description_parts)
                    continue
            if current in LIST_SECTIONS:
                sections[current].append(entry)
            elif current == DESCRIPTION or current is None:
                description_parts.append(entry)
            continue

        if ":" in line:
            key, _, value = line.partition(":")
            section = match_section(key)
            if section is not None:
                current = section
                if value.strip():
                    _route(section, value, sections, description_parts)
                continue

        cleaned = _clean(line)
        section = match_section(cleaned) if len(cleaned.split()) <= 4 else None
        if section is not None:
            current = section
            continue

        if current in (None, DESCRIPTION):
            description_parts.append(cleaned)
        else:
            sections[current].append(cleaned)

    for name, extractor in KEYWORD_EXTRACTORS.items():
        if not sections[name]:
            sections[name] = extractor(text)

    result: Dict[str, object] = {DESCRIPTION: " ".join(description_parts).strip()}
    result.update(sections)
    return result


def _route(section: str, value: str, sections: Dict[str, List[str]], description_parts: List[str]) -> None:
    value = _clean(value)
    if not value:
        return
    if section == DESCRIPTION:
        description_parts.append(value)
    else:
        sections[section].extend(_split_items(value))


def summary_to_sections(summary: str) -> Dict[str, object]:
    """Keyword-only extraction for prose summaries (no line structure)."""
    return {
        DESCRIPTION: summary.strip(),
        CAUSES: keyword_causes(summary),
        SYMPTOMS: keyword_symptoms(summary),
        PREVENTION: keyword_prevention(summary),
        TREATMENT: keyword_treatment(summary),
    }
