from __future__ import annotations

import unittest

from rs_scene_switcher.relevance import is_relevant_scene, normalize_policy


def _relevant(scene: str | None, policy: str, deny: tuple[str, ...] = ()) -> bool:
    return is_relevant_scene(
        scene,
        policy=policy,
        menu_scene="Menu",
        song_scenes=["Song", "SongAlt"],
        pause_scene="Paused",
        deny_scenes=deny,
    )


class RelevanceFilterTests(unittest.TestCase):
    def test_allow_list(self) -> None:
        for scene in ["Menu", "Song", "SongAlt", "Paused"]:
            with self.subTest(scene=scene):
                self.assertTrue(_relevant(scene, "allow_list"))
        self.assertFalse(_relevant("Just Chatting", "allow_list"))
        self.assertFalse(_relevant("menu", "allow_list"))
        self.assertFalse(_relevant(None, "allow_list"))

    def test_deny_list_is_case_insensitive(self) -> None:
        deny = ("Starting Soon", "BRB")
        self.assertFalse(_relevant("brb", "deny_list", deny))
        self.assertFalse(_relevant("STARTING SOON", "deny_list", deny))
        self.assertTrue(_relevant("Just Chatting", "deny_list", deny))
        self.assertTrue(_relevant("BRB later", "deny_list", deny))

    def test_always(self) -> None:
        self.assertTrue(_relevant("Anything", "always"))
        self.assertTrue(_relevant(None, "always"))

    def test_unknown_policy_falls_back_to_allow_list(self) -> None:
        self.assertEqual(normalize_policy("whitelist"), "allow_list")
        self.assertFalse(_relevant("Just Chatting", "whitelist"))
        self.assertTrue(_relevant("Song", "whitelist"))
        self.assertEqual(normalize_policy("Deny-List"), "deny_list")


if __name__ == "__main__":
    unittest.main()
