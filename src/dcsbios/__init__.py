"""
DCS-BIOS connections

- Stream decoder: DCS-BIOS exports the state of every cockpit control as a stream of frames
  (sync marker, address, length, data) sent to a multicast group. ProtocolDecoder reassembles frames
  regardless of how they are split across datagrams and produces ControlUpdate instances.
- Conduit: opens the UDP sockets. A multicast receiver for the export stream, and a sender for commands.
- Command dispatcher: commands are ASCII lines such as "FLAPS_SWITCH INC\\n". Any thread can queue them;
  one background thread sends them in the order they were queued.
- Transport: owns the sockets and the background threads for one session, from startup() to shutdown(),
  and fires events for connection activity, raw data, control updates and sent commands.
- Faults: errors on background threads are recorded in a FaultTracker and never raised to callers.


## Threading

A running transport has three daemon threads: the receive loop, a throttle timer that wakes the
receive loop every 10ms when no data is waiting, and the command dispatcher. Event handlers are called
on these threads, so they should hand off any slow work.

There is no shared global transport. An application that wants a single connection to the simulator
creates one transport and passes it to the code that needs it.

Mapping addresses to named controls, and building command strings from control definitions, is left
to the application.
"""
