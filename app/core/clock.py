from datetime import datetime, timedelta, timezone


class Clock:
    """
    Fonte de "agora" injetável. Sempre devolve UTC sem fuso,
    que é o formato gravado no banco.
    """

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock(Clock):
    """Relógio parado, usado nos testes e em reprocessamentos manuais."""

    def __init__(self, moment: datetime):
        self.moment = to_naive_utc(moment)

    def now(self) -> datetime:
        return self.moment

    def advance(self, **delta) -> None:
        self.moment = self.moment + timedelta(**delta)


def to_naive_utc(dt: datetime) -> datetime:
    """Converte para UTC e remove o fuso (datas sem fuso já são tratadas como UTC)."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


system_clock = SystemClock()
