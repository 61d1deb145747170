import pytest

from bladeagent.fancontroller import (
    FanControllerConfig,
    FanControllerStep,
    FanOverrideOpts,
    LinearFanController,
)


def _config(*steps):
    return FanControllerConfig(
        steps=tuple(FanControllerStep(temperature=t, percent=p) for t, p in steps)
    )


@pytest.fixture
def controller():
    return LinearFanController(_config((20, 30), (30, 60)))


@pytest.mark.parametrize(
    ("temperature", "expected"),
    [(15, 30), (25, 45), (35, 60)],
)
def test_get_fan_speed(controller, temperature, expected):
    assert controller.get_fan_speed(temperature) == expected


@pytest.mark.parametrize("temperature", [15, 25, 35])
def test_get_fan_speed_with_override(controller, temperature):
    controller.override(FanOverrideOpts(percent=99))
    assert controller.get_fan_speed(temperature) == 99


def test_override_cleared_returns_to_curve(controller):
    controller.override(FanOverrideOpts(percent=99))
    controller.override(None)
    assert controller.get_fan_speed(15) == 30
    assert controller.get_fan_speed(35) == 60


def test_fan_speed_is_monotonic_between_steps(controller):
    speeds = [controller.get_fan_speed(t / 2) for t in range(30, 71)]
    assert speeds == sorted(speeds)
    assert all(30 <= speed <= 60 for speed in speeds)


@pytest.mark.parametrize(
    ("steps", "message"),
    [
        (((20, 30),), "exactly two steps must be defined"),
        (((30, 60), (20, 30)), "step 1 temperature must be lower than step 2 temperature"),
        (((20, 60), (30, 30)), "step 1 speed must be lower than step 2 speed"),
        (((20, 10), (30, 200)), "speed must be between 0 and 100"),
    ],
)
def test_construction_errors(steps, message):
    with pytest.raises(ValueError) as excinfo:
        LinearFanController(_config(*steps))
    assert str(excinfo.value) == message


def test_config_from_dict():
    config = FanControllerConfig.from_dict(
        {"steps": [{"temperature": 20, "percent": 30}, {"temperature": 30, "percent": 60}]}
    )
    assert config == _config((20.0, 30), (30.0, 60))
    assert LinearFanController(config).get_fan_speed(25) == 45


def test_config_from_empty_dict_is_rejected():
    with pytest.raises(ValueError, match="exactly two steps"):
        LinearFanController(FanControllerConfig.from_dict(None))


def test_override_opts_from_dict():
    assert FanOverrideOpts.from_dict({"speed": 40}) == FanOverrideOpts(percent=40)
    assert FanOverrideOpts.from_dict(None) is None