from __future__ import annotations

from typing import Iterable


RELEVANCE_ALLOW_LIST = "allow_list"
RELEVANCE_DENY_LIST = "deny_list"
RELEVANCE_ALWAYS = "always"
RELEVANCE_POLICIES = {RELEVANCE_ALLOW_LIST, RELEVANCE_DENY_LIST, RELEVANCE_ALWAYS}


def normalize_policy(raw: str) -> str:
    token = str(raw or "").strip().lower().replace("-", "_")
    if token in {"always_on", "on", "all"}:
        return RELEVANCE_ALWAYS
    if token not in RELEVANCE_POLICIES:
        return RELEVANCE_ALLOW_LIST
    return token


def is_relevant_scene(
    scene: str | None,
    *,
    policy: str,
    menu_scene: str,
    song_scenes: Iterable[str],
    pause_scene: str,
    deny_scenes: Iterable[str] = (),
) -> bool:
    mode = normalize_policy(policy)
    if mode == RELEVANCE_ALWAYS:
        return True
    current = str(scene or "")
    if mode == RELEVANCE_DENY_LIST:
        denied = {str(item).strip().lower() for item in deny_scenes}
        return current.strip().lower() not in denied
    if not current:
        return False
    return current == menu_scene or current in set(song_scenes) or current == pause_scene
