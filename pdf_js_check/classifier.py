from __future__ import annotations

import logging
from typing import Any

from pypdf.generic import (
    ArrayObject,
    ByteStringObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
)

logger = logging.getLogger(__name__)

# Additional-actions trigger names (page, annotation and form-field events).
AA_TRIGGERS = ("/E", "/X", "/D", "/U", "/Fo", "/Bl", "/PO", "/PC", "/PV", "/PI")

FONT_MATRIX_MARKERS = ("alert(", "window.origin")


class JsIndicatorClassifier:
    """Decide whether a decoded PDF object carries JavaScript.

    Known JavaScript-bearing shapes are checked first; every other property is
    then walked with the same rules. Indirect references entered by the walk are
    remembered by ``(idnum, generation)`` so cyclic object graphs terminate.
    """

    def __init__(self, max_depth: int = 64) -> None:
        self.max_depth = max_depth

    def contains_javascript(self, obj: Any) -> bool:
        indicator = self.find_indicator(obj)
        if indicator is not None:
            logger.debug("JavaScript indicator matched", extra={"context": {"indicator": indicator}})
        return indicator is not None

    def find_indicator(self, obj: Any) -> str | None:
        visited: set[tuple[int, int]] = set()
        ref = None if isinstance(obj, IndirectObject) else getattr(obj, "indirect_reference", None)
        if isinstance(ref, IndirectObject):
            visited.add((ref.idnum, ref.generation))
        return self._walk(obj, visited, 0)

    def _walk(self, value: Any, visited: set[tuple[int, int]], depth: int) -> str | None:
        if depth > self.max_depth:
            return None
        if isinstance(value, IndirectObject):
            key = (value.idnum, value.generation)
            if key in visited:
                return None
            visited.add(key)
            value = _deref(value)
        if isinstance(value, DictionaryObject):
            return self._dict_indicator(value, visited, depth)
        if isinstance(value, ArrayObject):
            for item in value:
                found = self._walk(item, visited, depth + 1)
                if found:
                    return found
        return None

    def _dict_indicator(self, obj: DictionaryObject, visited: set[tuple[int, int]], depth: int) -> str | None:
        if "/JS" in obj:
            return "JS"
        if "/URI" in obj and self.is_javascript_uri(obj.get("/URI")):
            return "URI"
        for key in ("/A", "/OpenAction"):
            if key in obj and self.action_contains_javascript(obj.get(key)):
                return key.strip("/")
        if "/AA" in obj:
            additional = _deref(obj.get("/AA"))
            if isinstance(additional, DictionaryObject):
                for trigger in AA_TRIGGERS:
                    if trigger in additional and self.action_contains_javascript(additional.get(trigger)):
                        return f"AA{trigger}"
        if "/Annots" in obj and self._annotations_contain_javascript(obj.get("/Annots")):
            return "Annots"
        if "/Contents" in obj and self.value_contains_javascript(obj.get("/Contents")):
            return "Contents"
        if "/FontMatrix" in obj and self._font_matrix_contains_javascript(obj.get("/FontMatrix")):
            return "FontMatrix"
        if "/V" in obj and self.value_contains_javascript(obj.get("/V")):
            return "V"

        for key, value in obj.items():
            found = self._walk(value, visited, depth + 1)
            if found:
                return f"{key}>{found}"
        return None

    def is_javascript_uri(self, uri: Any) -> bool:
        uri = _deref(uri)
        text = _string_value(uri)
        if text is not None:
            return "javascript:" in text.lower()
        if not isinstance(uri, DictionaryObject) or not _is_name(uri.get("/S"), "/URI"):
            return False

        if _has_javascript_protocol(uri):
            return True
        for key in ("/URI", "/Next"):
            nested = _deref(uri.get(key))
            nested_text = _string_value(nested)
            if nested_text is not None and "javascript:" in nested_text.lower():
                return True
            if isinstance(nested, DictionaryObject):
                if _is_name(nested.get("/S"), "/JavaScript"):
                    return True
                if _is_name(nested.get("/S"), "/URI") and _has_javascript_protocol(nested):
                    return True
        return False

    def action_contains_javascript(self, action: Any) -> bool:
        action = _deref(action)
        if not isinstance(action, DictionaryObject):
            return False
        if "/JS" in action:
            return True
        if "/URI" in action and self.is_javascript_uri(action.get("/URI")):
            return True
        return _is_name(action.get("/S"), "/JavaScript")

    def value_contains_javascript(self, value: Any) -> bool:
        value = _deref(value)
        if isinstance(value, ArrayObject):
            return any(self._single_value_contains_javascript(item) for item in value)
        return self._single_value_contains_javascript(value)

    def _single_value_contains_javascript(self, value: Any) -> bool:
        value = _deref(value)
        if not isinstance(value, DictionaryObject):
            return False
        if "/JS" in value:
            return True
        if _is_name(value.get("/S"), "/JavaScript"):
            return True
        return "/URI" in value and self.is_javascript_uri(value.get("/URI"))

    def _annotations_contain_javascript(self, annots: Any) -> bool:
        annots = _deref(annots)
        if not isinstance(annots, ArrayObject):
            return False
        for item in annots:
            annot = _deref(item)
            if not isinstance(annot, DictionaryObject):
                continue
            if "/A" in annot and self.action_contains_javascript(annot.get("/A")):
                return True
            if "/V" in annot and self.value_contains_javascript(annot.get("/V")):
                return True
            if "/Contents" in annot and self.value_contains_javascript(annot.get("/Contents")):
                return True
        return False

    def _font_matrix_contains_javascript(self, matrix: Any) -> bool:
        matrix = _deref(matrix)
        if not isinstance(matrix, ArrayObject):
            return False
        for item in matrix:
            text = _string_value(_deref(item))
            if text is not None and any(marker in text for marker in FONT_MATRIX_MARKERS):
                return True
            if self._single_value_contains_javascript(item):
                return True
        return False


def _deref(value: Any) -> Any:
    if isinstance(value, IndirectObject):
        try:
            return value.get_object()
        except Exception:
            return None
    return value


def _string_value(value: Any) -> str | None:
    if value is None or isinstance(value, NameObject):
        return None
    if isinstance(value, (ByteStringObject, bytes)):
        return bytes(value).decode("latin-1")
    if isinstance(value, str):
        return str(value)
    return None


def _is_name(value: Any, name: str) -> bool:
    value = _deref(value)
    return isinstance(value, str) and str(value) == name


def _has_javascript_protocol(uri_action: DictionaryObject) -> bool:
    target = _deref(uri_action.get("/F"))
    if isinstance(target, NameObject):
        target = str(target)[1:]
    else:
        target = _string_value(target)
    return target in {"JavaScript", "Data"}
