"""Russian dictionaries for categories, cities, delivery intent, units and grades.

These tables are static configuration. The matching/extraction algorithms receive them as data, so
the vocabulary can evolve without touching the parser code.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.query.schema import CategoryDefinition


def _category(
        category_id: str,
        display_name: str,
        keywords: tuple[str, ...],
        default_unit: str | None = None,
) -> CategoryDefinition:
    return CategoryDefinition(
        id=category_id,
        display_name=display_name,
        keywords=keywords,
        default_unit=default_unit,
    )


# Declaration order is the tie-break order for matching.
DEFAULT_CATEGORIES: tuple[CategoryDefinition, ...] = (
    _category(
        "concrete",
        "Бетон",
        ("бетон", "раствор", "товарный бетон"),
        default_unit="м³",
    ),
    _category(
        "aggregates",
        "Инертные материалы",
        ("песок", "песка", "щебень", "щебня", "гравий", "гравия", "отсев", "пгс", "инертн"),
        default_unit="тонн",
    ),
    _category(
        "blocks",
        "Кирпич и блоки",
        (
            "кирпич", "газоблок", "пеноблок", "блок", "газобетон", "пенобетон", "шлакоблок",
            "керамзитоблок",
        ),
        default_unit="м³",
    ),
    _category(
        "rebar",
        "Арматура и металлопрокат",
        (
            "арматур", "металл", "прокат", "швеллер", "уголок", "уголка", "труба", "трубу",
            "трубы", "лист", "балка", "сетка", "сетки",
        ),
        default_unit="тонн",
    ),
    _category(
        "cement",
        "Цемент",
        ("цемент", "портландцемент", "пц400", "пц500", "м400", "м500"),
    ),
    _category(
        "machinery",
        "Спецтехника",
        (
            "спецтехник", "экскаватор", "кран", "бульдозер", "погрузчик", "автокран", "миксер",
            "самосвал", "аренда техники",
        ),
        default_unit="час",
    ),
    _category(
        "pvc-profiles",
        "ПВХ профили и подоконники",
        ("пвх", "подоконник", "профиль", "профили", "ламбри", "штапик", "оконный профиль"),
    ),
    _category(
        "general-materials",
        "Общестроительные материалы",
        (
            "осп", "фанера", "двп", "дсп", "гипсокартон", "ламинат", "керамогранит", "утеплитель",
            "штукатурка", "кафельный клей", "рубероид",
        ),
    ),
    _category(
        "painting-tools",
        "Малярный инструмент",
        ("валик", "кисть", "шпатель", "кельма", "терка", "малярный инструмент"),
    ),
    _category(
        "hand-tools",
        "Ручной инструмент",
        ("молоток", "рулетка", "отвертка", "ножовка", "плоскогубцы", "инструмент"),
    ),
    _category(
        "fasteners",
        "Крепеж и метизы",
        ("саморез", "дюбель", "гвозд", "болт", "гайка", "анкер", "шуруп", "метиз"),
    ),
    _category(
        "electrical",
        "Электрика",
        ("кабель", "провод", "розетка", "выключатель", "лампа", "электрика"),
    ),
    _category(
        "plumbing",
        "Сантехника и трубы",
        ("сантехник", "фитинг", "смеситель", "муфта"),
    ),
    _category(
        "safety",
        "СИЗ и безопасность",
        ("перчатки", "каска", "респиратор", "сиз"),
    ),
    _category(
        "adhesives-sealants",
        "Клеи и герметики",
        ("клей", "герметик", "монтажная пена", "силикон", "эпоксид"),
    ),
)

# Categories for which the bulk m3 <-> t conversion is meaningful.
AGGREGATE_CATEGORY_IDS: frozenset[str] = frozenset({"aggregates"})


@dataclass(frozen=True)
class FuzzyPolicy:
    """Edit-distance tolerance for typo matching.

    A keyword of length `n` accepts up to `max(1, n // chars_per_edit)` edits, so short words
    tolerate a single typo and longer words proportionally more.
    """

    min_keyword_length: int = 4
    min_token_length: int = 3
    chars_per_edit: int = 4

    def max_distance(self, keyword: str) -> int:
        return max(1, len(keyword) // self.chars_per_edit)

    def allows(self, token: str, keyword: str) -> bool:
        """Whether the pair is eligible for fuzzy comparison at all."""

        # Codes like "м400" or "пц500" are never typo targets.
        if not keyword.isalpha() or not token.isalpha():
            return False
        if len(keyword) < self.min_keyword_length or len(token) < self.min_token_length:
            return False
        return abs(len(token) - len(keyword)) <= self.max_distance(keyword) + 1


DEFAULT_FUZZY_POLICY = FuzzyPolicy()

# Service-area gazetteer: matched stem -> canonical city name.
CITY_STEMS: dict[str, str] = {
    "шымкент": "Шымкент",
    "шимкент": "Шымкент",
    "чимкент": "Шымкент",
    "туркестан": "Туркестан",
    "кентау": "Кентау",
    "сарыагаш": "Сарыагаш",
    "ленгер": "Ленгер",
    "жетысай": "Жетысай",
    "алматы": "Алматы",
    "астана": "Астана",
}

DELIVERY_PHRASES: tuple[str, ...] = (
    "доставк",
    "доставить",
    "доставьте",
    "довезти",
    "довезите",
    "привезти",
    "привезите",
)

PICKUP_PHRASES: tuple[str, ...] = (
    "без доставки",
    "самовывоз",
)

# Unit words recognized next to a number. Longer alternatives first.
UNIT_WORD_PATTERNS: tuple[tuple[str, str], ...] = (
    ("m3", r"кубометр(?:ов|а|ы)?|куб(?:ов|а|ы)?|м3|m3"),
    ("t", r"тонн(?:ы|а|у)?|тн|т"),
    ("pcs", r"штук(?:а|и)?|шт"),
    ("hour", r"час(?:ов|а)?|ч"),
    ("shift", r"смен(?:ы|а|у)?"),
    ("trip", r"рейс(?:ов|а|ы)?"),
)


@dataclass(frozen=True)
class GradePattern:
    """A material grade marker and the category it implies when none was recognized."""

    pattern: str
    prefix: str
    implied_category_id: str


# Patterns run against normalized text; the first match wins. A bare "м" grade must touch its
# number: "100 м 20 штук" is a length, not a grade.
GRADE_PATTERNS: tuple[GradePattern, ...] = (
    GradePattern(r"\bмарк[а-я]*\s*(?P<value>\d{2,3})\b", "М", "concrete"),
    GradePattern(r"(?<![а-яa-z0-9])[мm]-?(?P<value>\d{2,3})(?!\d)", "М", "concrete"),
    GradePattern(
        r"\bкласс[а-я]*\s*[bв]?\s*(?P<value>\d{1,2}(?:\.\d)?)(?![\d.])", "B", "concrete"
    ),
    GradePattern(r"(?<![а-яa-z0-9])b[\s-]?(?P<value>\d{1,2}(?:\.\d)?)(?![\d.])", "B", "concrete"),
    GradePattern(
        r"(?<![а-яa-z0-9])[aа]-?(?P<value>\d{3})(?P<suffix>[cс])?(?![а-яa-z0-9])", "A", "rebar"
    ),
)
