"""
Parseur de flux text/event-stream (server-sent events).

Le flux est une suite de lignes « champ: valeur » ; une ligne vide
termine un message. Seuls les champs event, data, id et retry ont un
sens, les lignes commençant par « : » sont des commentaires.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional


@dataclass(frozen=True)
class ServerSentEvent:
    event: str = "message"
    data: str = ""
    id: Optional[str] = None
    retry: Optional[int] = None


def parse_stream(lines: Iterable[str]) -> Iterator[ServerSentEvent]:
    """Transforme des lignes (sans fin de ligne) en messages SSE complets."""
    event = ""
    data: list[str] = []
    last_id: Optional[str] = None
    retry: Optional[int] = None

    for line in lines:
        if line == "":
            # Un message sans data n'est émis que pour transmettre retry
            if data or retry is not None:
                yield ServerSentEvent(
                    event=event or "message",
                    data="\n".join(data),
                    id=last_id,
                    retry=retry,
                )
            event, data, retry = "", [], None
            continue
        if line.startswith(":"):
            continue

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
        elif field == "id":
            # Un id contenant NUL est ignoré
            if "\0" not in value:
                last_id = value
        elif field == "retry":
            if value.isdigit():
                retry = int(value)
