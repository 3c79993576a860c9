"""Вычисление и сравнение ETag (отпечатков содержимого).

ETag зависит только от семантического снимка предложения
(title, content, status); ключи словарей сортируются на всех уровнях
вложенности, поэтому порядок ключей на отпечаток не влияет.
"""
import hashlib
import json
import logging
import re
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

HASH_LENGTH = 8
_HASH_RE = re.compile(r"^[a-f0-9]{8}$", re.IGNORECASE)


def _canonical(payload: Any) -> str:
    # sort_keys сортирует ключи рекурсивно, порядок элементов списков сохраняется
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def generate(payload: Any) -> str:
    """Генерация ETag из объекта в формате "abc12345" (в кавычках, RFC 7232)"""
    if not isinstance(payload, (Mapping, list)):
        raise ValueError("Content must be an object")

    digest = hashlib.md5(_canonical(payload).encode("utf-8")).hexdigest()
    return f'"{digest[:HASH_LENGTH]}"'


def for_offer(title: Optional[str], content: Optional[Mapping[str, Any]], status: Optional[str]) -> str:
    """ETag предложения: учитываются только поля, влияющие на содержимое"""
    return generate({
        "title": title or "",
        "content": content or {},
        "status": status or "draft",
    })


def normalize(etag: Optional[str]) -> Optional[str]:
    """Нормализация ETag: обрезка пробелов и кавычки вокруг значения"""
    if not etag or not isinstance(etag, str):
        return None

    trimmed = etag.strip()
    if trimmed.startswith("W/"):
        trimmed = trimmed[2:]
    if not trimmed:
        return None

    if len(trimmed) >= 2 and trimmed.startswith('"') and trimmed.endswith('"'):
        return trimmed
    return f'"{trimmed}"'


def compare(etag1: Optional[str], etag2: Optional[str]) -> bool:
    """Сравнение двух ETag после нормализации"""
    normalized1 = normalize(etag1)
    normalized2 = normalize(etag2)
    if normalized1 is None or normalized2 is None:
        return False

    result = normalized1 == normalized2
    if not result:
        logger.debug(f"ETag mismatch: {normalized1} != {normalized2}")
    return result


def extract_hash(etag: Optional[str]) -> Optional[str]:
    """Хеш без кавычек"""
    normalized = normalize(etag)
    if normalized is None:
        return None
    return normalized[1:-1]


def is_valid(etag: Optional[str]) -> bool:
    """Проверка, что ETag состоит из 8 hex-символов"""
    value = extract_hash(etag)
    return bool(value) and bool(_HASH_RE.match(value))
