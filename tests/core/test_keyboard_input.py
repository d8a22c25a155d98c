"""Tests for keyboard input mapping."""

import pytest

from relax_player.core.input import (
    KEY_DOWN,
    KEY_ESCAPE,
    KEY_LEFT,
    KEY_RIGHT,
    KEY_UP,
    InputAction,
    InputConfig,
    Keyboard,
    decode_escape_sequence,
)


class TestInputConfig:
    """Test default key bindings."""

    @pytest.fixture
    def config(self) -> InputConfig:
        return InputConfig()

    @pytest.mark.parametrize(
        ("key", "action"),
        [
            (KEY_LEFT, InputAction.SELECT_PREV),
            ("h", InputAction.SELECT_PREV),
            (KEY_RIGHT, InputAction.SELECT_NEXT),
            ("l", InputAction.SELECT_NEXT),
            (KEY_UP, InputAction.VOLUME_UP),
            ("k", InputAction.VOLUME_UP),
            (KEY_DOWN, InputAction.VOLUME_DOWN),
            ("j", InputAction.VOLUME_DOWN),
            ("m", InputAction.TOGGLE_MUTE),
            ("M", InputAction.TOGGLE_MUTE),
            ("q", InputAction.QUIT),
            ("Q", InputAction.QUIT),
        ],
    )
    def test_default_bindings(self, config: InputConfig, key: str, action: InputAction) -> None:
        assert config.action_for(key) is action

    def test_unbound_key(self, config: InputConfig) -> None:
        """Test keys without a binding map to nothing."""
        assert config.action_for("x") is None
        assert config.action_for(KEY_ESCAPE) is None

    def test_no_key(self, config: InputConfig) -> None:
        assert config.action_for(None) is None

    def test_custom_bindings(self) -> None:
        config = InputConfig(bindings={"x": InputAction.QUIT})
        assert config.action_for("x") is InputAction.QUIT
        assert config.action_for("q") is None


class TestEscapeSequences:
    """Test ANSI arrow key decoding."""

    @pytest.mark.parametrize(
        ("sequence", "key"),
        [("[A", KEY_UP), ("[B", KEY_DOWN), ("[C", KEY_RIGHT), ("[D", KEY_LEFT), ("OA", KEY_UP)],
    )
    def test_arrows(self, sequence: str, key: str) -> None:
        assert decode_escape_sequence(sequence) == key

    def test_lone_escape(self) -> None:
        assert decode_escape_sequence("") == KEY_ESCAPE

    def test_unknown_sequence_dropped(self) -> None:
        assert decode_escape_sequence("[Z") is None


class TestKeyboardPosix:
    """Test POSIX key reading with a scripted character source."""

    @pytest.fixture
    def keyboard(self) -> Keyboard:
        return Keyboard()

    def _script(self, keyboard: Keyboard, monkeypatch, chars: list[str | None]) -> None:
        remaining = list(chars)

        def fake_read(timeout: float) -> str | None:
            return remaining.pop(0) if remaining else None

        monkeypatch.setattr(keyboard, "_read_char_posix", fake_read)

    def test_plain_character(self, keyboard: Keyboard, monkeypatch) -> None:
        self._script(keyboard, monkeypatch, ["k"])
        assert keyboard._read_key_posix(0.1) == "k"

    def test_timeout_returns_none(self, keyboard: Keyboard, monkeypatch) -> None:
        """Test an empty poll window is not an error."""
        self._script(keyboard, monkeypatch, [None])
        assert keyboard._read_key_posix(0.1) is None

    def test_arrow_key(self, keyboard: Keyboard, monkeypatch) -> None:
        self._script(keyboard, monkeypatch, ["\x1b", "[", "D"])
        assert keyboard._read_key_posix(0.1) == KEY_LEFT

    def test_bare_escape(self, keyboard: Keyboard, monkeypatch) -> None:
        self._script(keyboard, monkeypatch, ["\x1b", None])
        assert keyboard._read_key_posix(0.1) == KEY_ESCAPE
