from storysaves.events import EventBus, GameSaved, PageHidden, PageUnloading


def test_subscribe_is_idempotent_and_unsubscribe_detaches():
    bus = EventBus()
    seen = []
    bus.subscribe(PageHidden, seen.append)
    bus.subscribe(PageHidden, seen.append)
    assert bus.subscriber_count(PageHidden) == 1

    bus.emit(PageHidden())
    assert seen == [PageHidden(hidden=True)]

    bus.unsubscribe(PageHidden, seen.append)
    bus.unsubscribe(PageHidden, seen.append)
    bus.emit(PageHidden())
    assert len(seen) == 1


def test_events_only_reach_their_own_type():
    bus = EventBus()
    seen = []
    bus.subscribe(PageUnloading, seen.append)
    bus.emit(GameSaved("alice", None, 1))
    assert seen == []
