import pytest
from unittest.mock import AsyncMock, Mock
from calcflow.graph import DependencyGraph


@pytest.fixture
def chain(graph):
    """A <- B <- C: B reads A, C reads B."""
    for node_id, header in [('a', 'A'), ('b', 'B'), ('c', 'C')]:
        graph.register_node(node_id, header=header)
    graph.add_dependency('b', 'a')
    graph.add_dependency('c', 'b')
    return graph


class TestNodeTable:

    def test_register_and_lookup(self, graph):
        """Test registering a node and looking it up."""
        record = graph.register_node('n1', header='Price', result=2.5, expression='1+1.5')

        assert graph.get_node('n1') is record
        assert record.header == 'Price'
        assert record.result == 2.5
        assert record.metadata == {'expression': '1+1.5'}
        assert graph.get_node_by_header('Price') is record
        assert graph.get_node_by_header('price') is None

    def test_first_header_match_wins(self, graph):
        """Test duplicate headers resolve to the first registered node."""
        graph.register_node('n1', header='X')
        graph.register_node('n2', header='X')
        assert graph.get_node_by_header('X').node_id == 'n1'

    def test_update_node(self, graph):
        """Test updates replace the record and merge metadata."""
        original = graph.register_node('n1', header='A', tag='x')
        updated = graph.update_node('n1', result=3.0, color='red')

        assert updated is not original
        assert original.result == 0.0
        assert updated.result == 3.0
        assert updated.metadata == {'tag': 'x', 'color': 'red'}
        assert original.metadata == {'tag': 'x'}

    def test_update_unknown_node(self, graph):
        """Test updating an unknown id is a no-op."""
        assert graph.update_node('missing', result=1.0) is None
        assert graph.get_node('missing') is None

    def test_register_keeps_edges(self, chain):
        """Test re-registering a node keeps its edges."""
        chain.register_node('b', header='B2')
        assert chain.get_dependencies('b') == ['a']
        assert chain.get_dependents('b') == ['c']

    def test_unregister_removes_edges(self, chain):
        """Test removing a node drops every edge touching it."""
        chain.unregister_node('b')

        assert chain.get_node('b') is None
        assert chain.get_dependents('a') == []
        assert chain.get_dependencies('c') == []


class TestEdges:

    def test_edges_are_mirrored(self, chain):
        """Test dependents and dependencies stay in sync."""
        assert chain.get_dependents('a') == ['b']
        assert chain.get_dependencies('b') == ['a']

        chain.remove_dependency('b', 'a')
        assert chain.get_dependents('a') == []
        assert chain.get_dependencies('b') == []

    def test_add_is_idempotent(self, chain):
        chain.add_dependency('b', 'a')
        assert chain.get_dependents('a') == ['b']

    def test_self_edge_rejected(self, graph):
        """Test a node cannot depend on itself."""
        graph.register_node('a')
        with pytest.raises(ValueError):
            graph.add_dependency('a', 'a')

    def test_remove_missing_edge(self, graph):
        """Test removing an unknown edge is harmless."""
        graph.remove_dependency('x', 'y')
        assert graph.get_dependencies('x') == []


class TestTraversals:

    def test_no_cycle(self, chain):
        assert not chain.detect_circular_dependency('c')

    def test_cycle_detected(self, chain):
        """Test a cycle reachable along dependencies is found."""
        chain.add_dependency('a', 'c')
        assert chain.detect_circular_dependency('a')
        assert chain.detect_circular_dependency('b')

    def test_cycle_reachable_from_outside(self, chain):
        """Test a node depending on a cycle sees it."""
        chain.register_node('d')
        chain.add_dependency('d', 'c')
        chain.add_dependency('b', 'c')
        assert chain.detect_circular_dependency('d')

    def test_shared_dependency_is_not_a_cycle(self, graph):
        """Test a diamond has no cycle."""
        for node_id in 'abcd':
            graph.register_node(node_id)
        graph.add_dependency('b', 'a')
        graph.add_dependency('c', 'a')
        graph.add_dependency('d', 'b')
        graph.add_dependency('d', 'c')
        assert not graph.detect_circular_dependency('d')

    def test_long_chain(self, graph):
        """Test deep chains do not hit the recursion limit."""
        for i in range(5000):
            graph.register_node(i)
            if i:
                graph.add_dependency(i, i - 1)
        assert not graph.detect_circular_dependency(4999)
        assert graph.get_topological_order()[:3] == [0, 1, 2]

    def test_topological_order(self, graph):
        """Test every node comes after its dependencies."""
        for node_id in ['c', 'b', 'a']:
            graph.register_node(node_id)
        graph.add_dependency('b', 'a')
        graph.add_dependency('c', 'b')

        order = graph.get_topological_order()
        assert order == ['a', 'b', 'c']

    def test_topological_order_with_cycle(self, chain):
        """Test cycles still list each node once."""
        chain.add_dependency('a', 'c')
        order = chain.get_topological_order()
        assert sorted(order) == ['a', 'b', 'c']

    def test_propagation_closure(self, chain):
        """Test the transitive dependents of a node."""
        assert chain.propagation_closure('a') == {'b', 'c'}
        assert chain.propagation_closure('c') == set()

    def test_closure_excludes_start_on_cycle(self, chain):
        chain.add_dependency('a', 'c')
        assert chain.propagation_closure('a') == {'b', 'c'}


class TestPropagation:

    @pytest.mark.asyncio
    async def test_callbacks_run_in_order_after_turn(self, chain):
        """Test dependents update after the current turn, dependencies first."""
        calls = []
        chain.update_node('b', update_callback=lambda: calls.append('b'))
        chain.update_node('c', update_callback=lambda: calls.append('c'))

        ordered = chain.trigger_dependent_updates('a')
        assert ordered == ['b', 'c']
        assert calls == []

        await chain.scheduler.settle()
        assert calls == ['b', 'c']

    @pytest.mark.asyncio
    async def test_async_callbacks_awaited(self, chain):
        """Test coroutine callbacks are awaited one after another."""
        first = AsyncMock()
        second = AsyncMock()
        chain.update_node('b', update_callback=first)
        chain.update_node('c', update_callback=second)

        chain.trigger_dependent_updates('a')
        await chain.scheduler.settle()

        first.assert_awaited_once()
        second.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_others(self, chain, caplog):
        """Test a raising callback is logged and the rest still run."""
        chain.update_node('b', update_callback=Mock(side_effect=RuntimeError("boom")))
        later = Mock()
        chain.update_node('c', update_callback=later)

        chain.trigger_dependent_updates('a')
        await chain.scheduler.settle()

        later.assert_called_once()
        assert "Update callback for node 'b' failed" in caplog.text

    @pytest.mark.asyncio
    async def test_callbacks_snapshot(self, chain):
        """Test callbacks are captured when the change is triggered."""
        calls = []
        chain.update_node('b', update_callback=lambda: calls.append('old'))
        chain.trigger_dependent_updates('a')
        chain.update_node('b', update_callback=lambda: calls.append('new'))

        await chain.scheduler.settle()
        assert calls == ['old']

    def test_no_callbacks_schedules_nothing(self, chain):
        """Test propagation without callbacks needs no event loop."""
        assert chain.trigger_dependent_updates('a') == ['b', 'c']
        assert not chain.scheduler.pending

    def test_listeners(self, chain):
        """Test listeners are notified synchronously and can unsubscribe."""
        seen = []
        unsubscribe = chain.subscribe(lambda node_id, record: seen.append((node_id, record.header)))

        chain.trigger_dependent_updates('a')
        assert seen == [('a', 'A')]

        unsubscribe()
        unsubscribe()
        chain.trigger_dependent_updates('a')
        assert seen == [('a', 'A')]

    def test_default_scheduler(self):
        graph = DependencyGraph()
        assert graph.scheduler is not None
