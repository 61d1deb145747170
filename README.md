# bladeagent

Building blocks for an agent that manages the hardware features of a compute
blade, and a command that runs that agent on a simulated blade:

- a linear fan curve between two temperature steps, with manual overrides
  (`bladeagent.fancontroller`);
- blink patterns for the top and edge RGB LEDs (`bladeagent.ledengine`);
- *identify* mode, toggled by the edge button, and *critical* mode (fan at
  100 %, stealth mode off, top LED blinking) (`bladeagent.agent`,
  `bladeagent.state`);
- the framed serial protocol of the smart fan unit, with escaping and an XOR
  checksum (`bladeagent.proto`, `bladeagent.smartfanunit`), and a client
  for the fan unit over a serial port (`bladeagent.fanunit`);
- a driver for the EMC2101 fan controller chip over any I²C bus object
  (`bladeagent.emc2101`).

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running the agent

```
compute-blade-agent
compute-blade-agent --config ./config.yaml
```

Without `--config` the agent reads `/etc/compute-blade-agent/config.yaml`.
A setting can be overridden from the environment: add the `BLADE_` prefix,
write the key in upper case and replace each dot with an underscore, so
`BLADE_LOG_MODE=development` sets `log.mode`. This works for every key present
in the file and for `log.mode` and `listen.grpc`; the value is parsed as a
YAML scalar.

`log.mode` must be `development` (human-readable lines, debug level) or
`production` (one JSON object per line, info level). `fan_controller.steps`
must hold exactly two steps, ordered by temperature and by speed, with speeds
of at most 100; otherwise the agent exits with status 1.

```yaml
log:
  mode: production
idle_led_color: {red: 0, green: 16, blue: 0}
identify_led_color: {red: 16, green: 0, blue: 16}
critical_led_color: {red: 255, green: 0, blue: 0}
stealth_mode: false
fan_controller:
  steps:
    - {temperature: 45, percent: 40}
    - {temperature: 55, percent: 80}
hal:
  rpm_reporting_standard_fan_unit: true
```

`critical_temperature_threshold`, `fan_speed` and `listen.grpc` are accepted
and stored in the configuration, but the agent does not act on them.

Every five seconds the agent reads the temperature and sets the fan speed from
the curve. It stops on SIGINT or SIGTERM; on the way out it sets the fan to
100 % and turns off both LEDs.

## What this package does not do

- The command always runs on `bladeagent.simulated.SimulatedHal`, which logs
  each hardware call and reports fixed values (42 °C, 1337 RPM, PoE+ power,
  an edge button press every five seconds). There is no backend that drives a
  real blade's GPIO, PWM fan output or LEDs.
- There is no remote control interface and no client command to emit events,
  set the fan speed or wait for identify confirmation from outside the
  process; use `ComputeBladeAgent.emit_event`, `set_fan_speed`,
  `set_stealth_mode` and `wait_for_identify_confirm` from Python.
- There is no metrics endpoint. The agent counts handled and dropped events in
  `ComputeBladeAgent.events_handled` and `events_dropped`.

## Library use

Smart fan unit protocol:

```python
import io
from bladeagent.proto import Packet, write_packet, read_packet

buf = io.BytesIO()
write_packet(buf, Packet(command=0x01, data=(0x11, 0x12, 0x13)))
buf.seek(0)
assert read_packet(buf) == Packet(command=0x01, data=(0x11, 0x12, 0x13))
```

`read_packet` skips bytes before a start-of-frame and frames of the wrong
length, raises `ChecksumMismatchError` or `InvalidFramingByteError` for bad
frames and `EOFError` when the stream ends.

Command packets:

```python
from bladeagent.hal import Color
from bladeagent.smartfanunit import SetLEDPacket, FanSpeedRPMPacket

packet = SetLEDPacket(color=Color(red=100)).packet()
SetLEDPacket.from_packet(packet).color        # Color(red=100, green=0, blue=0)
FanSpeedRPMPacket.from_packet(FanSpeedRPMPacket(rpm=1200.5).packet()).rpm  # 1200.5
```

Fan curve:

```python
from bladeagent.fancontroller import (
    FanControllerConfig, FanControllerStep, FanOverrideOpts, LinearFanController,
)

controller = LinearFanController(FanControllerConfig(steps=[
    FanControllerStep(temperature=20, percent=30),
    FanControllerStep(temperature=30, percent=60),
]))
controller.get_fan_speed(25)                 # 45
controller.override(FanOverrideOpts(percent=99))
controller.get_fan_speed(25)                 # 99
controller.override(None)                    # back to the curve
```

Other pieces:

- `bladeagent.eventbus.EventBus`: topic-based publish/subscribe for asyncio
  code; publishing never blocks and drops messages for full subscribers.
- `bladeagent.ledengine.LedEngine` with `static_pattern`, `burst_pattern`
  and `slow_blink_pattern`.
- `bladeagent.state.ComputeBladeState`: identify/critical tracking with
  awaitable `wait_for_identify_confirm` and `wait_for_critical_clear`.
- `bladeagent.fanunit`: `smart_fan_unit_present(port_name, timeout)` checks
  for a fan unit on a serial port, `open_smart_fan_unit(port_name)` returns a
  `SmartFanUnit` client.
- `bladeagent.emc2101.EMC2101`: any object with a
  `tx(address, write, read_size)` method can serve as the bus.