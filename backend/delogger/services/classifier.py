import re
from typing import List

from ..models.schemas import LogEntry

# "[timestamp] [level] message" на всю строку.
# Первые две группы нежадные, message жадный (забирает и последующие скобки).
# Разделитель только [\t\n\f\r ]: "\v" и юникодные пробелы не считаются.
LINE_PATTERN = re.compile(r"\[(.*?)\][\t\n\f\r ]+\[(.*?)\][\t\n\f\r ]+(.*)")

# Набор пробелов для обрезки строк: юникодный White_Space.
# str.strip() без аргументов режет ещё и \x1c-\x1f, здесь они остаются частью строки.
LINE_SPACE = (
    "\t\n\v\f\r \x85\xa0\u1680"
    "\u2000\u2001\u2002\u2003\u2004\u2005\u2006\u2007\u2008\u2009\u200a"
    "\u2028\u2029\u202f\u205f\u3000"
)


def classify_line(line: str) -> LogEntry:
    """Одна обрезанная непустая строка -> LogEntry (structured или raw)."""
    match = LINE_PATTERN.fullmatch(line)
    if match is None:
        return LogEntry.unstructured(line)
    timestamp, level, message = match.groups()
    return LogEntry.structured(timestamp, level, message)


def classify_text(text: str) -> List[LogEntry]:
    """
    Делит текст по "\\n", обрезает пробелы (включая "\\r" от CRLF),
    пропускает пустые строки. Порядок записей = порядок строк.
    """
    entries = []
    for line in text.split("\n"):
        line = line.strip(LINE_SPACE)
        if not line:
            continue
        entries.append(classify_line(line))
    return entries


def decode_body(body: bytes) -> str:
    # кодировка не проверяется: невалидные байты заменяются на U+FFFD
    return body.decode("utf-8", errors="replace")
