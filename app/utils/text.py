import re


def slugify(value: str, separator: str = "-") -> str:
    """Minúsculas, e qualquer sequência não-alfanumérica vira um único separador."""
    slug = re.sub(r"[^a-z0-9]+", separator, value.lower())
    return slug.strip(separator)


def normalize_label(value: str) -> str:
    """Forma usada para comparar nomes entre provedores ("Monaco  GP!" -> "monaco gp")."""
    return re.sub(r"\s+", " ", re.sub(r"[^a-z0-9]+", " ", value.lower())).strip()


def clean(value) -> str | None:
    """Strip + None para string vazia."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
