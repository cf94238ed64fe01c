"""Tests for package exports."""


def test_public_api_importable() -> None:
    """Test that the client-facing API is importable from the package root."""
    import sajilo_client

    for name in sajilo_client.__all__:
        assert getattr(sajilo_client, name) is not None


def test_core_exports() -> None:
    """Test that the main building blocks import from the package root."""
    from sajilo_client import (
        ChatSession,
        HiringMutations,
        HiringQueries,
        MutationDispatcher,
        PollingController,
        ResourceCache,
        SajiloClient,
    )

    assert ResourceCache is not None
    assert PollingController is not None
    assert MutationDispatcher is not None
    assert HiringQueries is not None
    assert HiringMutations is not None
    assert ChatSession is not None
    assert SajiloClient is not None
