"""
Format and delimiter detection for supplier price files.

Heuristics only; callers can always pass an explicit grammar.
"""

from models.parse_config import ParseFormat

# Delimiters tried in order; ties go to the earlier one.
CANDIDATE_DELIMITERS = [",", ";", "\t", "|"]

# Lines sampled for delimiter detection
DELIMITER_SAMPLE_LINES = 3

# Lines sampled for fixed-width detection
FORMAT_SAMPLE_LINES = 10
FIXED_WIDTH_MIN_AVG_LENGTH = 50
FIXED_WIDTH_MAX_DEVIATION = 10


def _non_blank(raw_text: str, skip_rows: int = 0) -> list[str]:
    lines = [line for line in raw_text.splitlines() if line.strip()]
    return lines[skip_rows:]


def detect_delimiter(raw_text: str, skip_rows: int = 0) -> str:
    """
    Pick the delimiter that splits the first lines consistently.

    For each candidate, counts occurrences in each sampled line. A candidate
    qualifies when the count is the same (and non-zero) on every line; the
    highest qualifying count wins. Defaults to comma.
    """
    sample = _non_blank(raw_text, skip_rows)[:DELIMITER_SAMPLE_LINES]
    if not sample:
        return ","

    best, best_count = ",", 0
    for candidate in CANDIDATE_DELIMITERS:
        counts = {line.count(candidate) for line in sample}
        if len(counts) != 1:
            continue
        count = counts.pop()
        if count > best_count:
            best, best_count = candidate, count

    return best


def _has_consistent_delimiter(sample: list[str]) -> bool:
    for candidate in CANDIDATE_DELIMITERS:
        counts = {line.count(candidate) for line in sample}
        if len(counts) == 1 and counts.pop() > 0:
            return True
    return False


def detect_format(raw_text: str) -> ParseFormat:
    """
    Guess whether content is fixed-width or delimited.

    Fixed-width when the sampled lines are long (average above 50 chars),
    each within 10 chars of the average, and no candidate delimiter appears
    consistently.
    """
    sample = _non_blank(raw_text)[:FORMAT_SAMPLE_LINES]
    if len(sample) < 2:
        return ParseFormat.DELIMITED

    lengths = [len(line) for line in sample]
    average = sum(lengths) / len(lengths)
    consistent = all(abs(length - average) < FIXED_WIDTH_MAX_DEVIATION for length in lengths)

    if consistent and average > FIXED_WIDTH_MIN_AVG_LENGTH and not _has_consistent_delimiter(sample):
        return ParseFormat.FIXED_WIDTH
    return ParseFormat.DELIMITED

