import pytest


def test_emit_and_remove():
    from hubsub.events import EventRegistry

    registry = EventRegistry()
    events = registry.for_callback('cb1')
    assert registry.for_callback('cb1') is events

    got = []
    def listener(body, headers):
        got.append(body)
    events.add_listener('content', listener)

    registry.emit('cb1', 'content', b'one', {})
    registry.emit('cb2', 'content', b'other', {})
    assert got == [b'one']

    events.remove_listener('content', listener)
    # removing twice is harmless
    events.remove_listener('content', listener)
    registry.emit('cb1', 'content', b'two', {})
    assert got == [b'one']

def test_failing_listener_does_not_stop_others():
    from hubsub.events import SubscriptionEvents

    events = SubscriptionEvents('cb1')
    got = []
    def broken(reason):
        raise RuntimeError(reason)
    events.add_listener('denied', broken)
    events.add_listener('denied', got.append)
    events.emit('denied', 'because')
    assert got == ['because']

def test_unknown_event():
    from hubsub.events import SubscriptionEvents
    with pytest.raises(ValueError):
        SubscriptionEvents('cb1').add_listener('renewed', lambda: None)

def test_discard():
    from hubsub.events import EventRegistry

    registry = EventRegistry()
    got = []
    registry.for_callback('cb1').add_listener('expired', lambda: got.append(True))
    registry.discard('cb1')
    registry.emit('cb1', 'expired')
    assert got == []
    assert registry.for_callback('cb1').listeners('expired') == []
