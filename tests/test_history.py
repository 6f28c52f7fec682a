import pytest

from protopirate.base import FlipperFormat, RadioPreset
from protopirate.history import HISTORY_MAX, History


class FakeDecoder:
    def __init__(self, hash_data, text):
        self.hash_data = hash_data
        self.text = text

    def get_hash_data(self):
        return self.hash_data

    def get_string(self):
        return self.text

    def serialize(self, flipper_format, preset):
        if preset is not None:
            flipper_format.insert_or_update("Frequency", preset.frequency)
            flipper_format.insert_or_update("Preset", preset.name)
        flipper_format.insert_or_update("Protocol", "Fake")
        flipper_format.insert_or_update("Bit", 64)


class Clock:
    def __init__(self):
        self.now = 0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def preset():
    return RadioPreset(name="AM650", frequency=433920000)


def test_add_and_read_back(clock, preset):
    history = History(clock=clock)
    assert history.add(FakeDecoder(1, "Fake 64bit\r\nKey:01\r\n"), preset)
    assert history.item_count() == 1
    assert history.last_index() == 1
    assert history.text_item(0) == "Fake 64bit\r\nKey:01\r\n"
    assert history.text_item_menu(0) == "1. Fake 64bit"


def test_menu_text_newline_only(clock, preset):
    history = History(clock=clock)
    history.add(FakeDecoder(1, "First\nSecond"), preset)
    assert history.text_item_menu(0) == "1. First"


def test_menu_text_single_line(clock, preset):
    history = History(clock=clock)
    history.add(FakeDecoder(1, "Only"), preset)
    assert history.text_item_menu(0) == "1. Only"


def test_out_of_range(clock, preset):
    history = History(clock=clock)
    assert history.text_item(0) == "---"
    assert history.text_item_menu(3) == "---"
    assert history.raw_data(0) is None


def test_duplicate_within_window_rejected(clock, preset):
    history = History(clock=clock)
    assert history.add(FakeDecoder(7, "A"), preset)
    clock.now = 100
    assert not history.add(FakeDecoder(7, "A"), preset)
    clock.now = 550
    # Window is measured from the last rejected repeat.
    assert not history.add(FakeDecoder(7, "A"), preset)
    clock.now = 1100
    assert history.add(FakeDecoder(7, "A"), preset)
    assert history.item_count() == 2


def test_different_hash_accepted_immediately(clock, preset):
    history = History(clock=clock)
    assert history.add(FakeDecoder(1, "A"), preset)
    assert history.add(FakeDecoder(2, "B"), preset)
    assert history.item_count() == 2


def test_full_history_drops_oldest(clock, preset):
    history = History(clock=clock)
    for number in range(HISTORY_MAX + 1):
        assert history.add(FakeDecoder(number, f"item{number}"), preset)
    assert history.item_count() == HISTORY_MAX
    assert history.last_index() == HISTORY_MAX + 1
    assert history.text_item(0) == "item1"
    assert history.text_item(HISTORY_MAX - 1) == f"item{HISTORY_MAX}"


def test_raw_data_holds_serialized_preset(clock, preset):
    history = History(clock=clock)
    history.add(FakeDecoder(1, "A"), preset)
    raw = history.raw_data(0)
    assert isinstance(raw, FlipperFormat)
    raw.rewind()
    assert raw.read_uint32("Frequency") == preset.frequency
    assert raw.read_string("Preset") == "AM650"
    assert raw.read_string("Protocol") == "Fake"


def test_preset_is_copied(clock, preset):
    history = History(clock=clock)
    history.add(FakeDecoder(1, "A"), preset)
    preset.frequency = 315000000
    preset.name = "FM238"
    stored = history.preset(0)
    assert stored.frequency == 433920000
    assert stored.name == "AM650"


def test_reset_clears(clock, preset):
    history = History(clock=clock)
    history.add(FakeDecoder(1, "A"), preset)
    history.add(FakeDecoder(2, "B"), preset)
    history.reset()
    assert history.item_count() == 0
    assert history.last_index() == 0
    assert history.text_item(0) == "---"