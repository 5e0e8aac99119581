from __future__ import annotations

DEFAULT_ROOMS: tuple[str, ...] = (
    "Room A101",
    "Room A102",
    "Room A103",
    "Room A104",
    "Room A105",
    "Lab L201",
    "Lab L202",
    "Lab L203",
    "Hall H301",
    "Hall H302",
)

LAB_ROOM_MARKERS = ("lab", "practical")
HANDS_ON_TYPES = {"lab", "practical"}


def is_lab_room(room: str) -> bool:
    normalized = room.strip().lower()
    return any(marker in normalized for marker in LAB_ROOM_MARKERS)


def room_suits(room: str, subject_type: str) -> bool:
    # Suitability is inferred from the room name only.
    if subject_type in HANDS_ON_TYPES:
        return is_lab_room(room)
    return not is_lab_room(room)


def ordered_rooms(subject_type: str, rooms: list[str] | tuple[str, ...], preferred: list[str] | tuple[str, ...] = ()) -> list[str]:
    preferred_set = set(preferred)
    preferred_fit = [room for room in rooms if room in preferred_set and room_suits(room, subject_type)]
    other_fit = [room for room in rooms if room not in preferred_set and room_suits(room, subject_type)]
    ordered = preferred_fit + other_fit
    if ordered:
        return ordered
    # No room matches the naming convention: fall back to every room, preferred first.
    return [room for room in rooms if room in preferred_set] + [room for room in rooms if room not in preferred_set]
