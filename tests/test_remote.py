"""
Integration tests for the gRPC remote sort service
"""

import io
import os

import grpc
import pytest

from conftest import CommaSplitJob
from pseudomr.artifacts import FileArtifactStore, MemoryArtifactStore
from pseudomr.config import EngineConfig
from pseudomr.errors import ShuffleError
from pseudomr.remote import RemoteSorter, SortServicer, create_server, iter_chunks
from pseudomr.sorters import MergeSorter


@pytest.fixture
def sort_server(temp_dir):
    """In-process sort server on an ephemeral port"""
    server_dir = os.path.join(temp_dir, 'server')
    servicer = SortServicer(FileArtifactStore(server_dir), MergeSorter(buffer_lines=3))
    server, port = create_server(0, servicer, max_workers=2, host='localhost')
    yield f'localhost:{port}', server_dir
    server.stop(0)


class TestIterChunks:
    """Tests for packing lines into messages"""

    def test_chunks_hold_whole_lines(self):
        """Test that no line is split across chunks"""
        lines = [f"key{i}\tvalue{i}\n" for i in range(100)]
        chunks = list(iter_chunks(lines, chunk_size=50))

        assert len(chunks) > 1
        assert all(chunk.endswith(b'\n') for chunk in chunks)
        assert b''.join(chunks).decode('utf-8') == ''.join(lines)

    def test_adds_missing_newline(self):
        """Test that the last line gets its terminator"""
        assert list(iter_chunks(['a\t1'])) == [b'a\t1\n']

    def test_empty(self):
        """Test that no lines give no chunks"""
        assert list(iter_chunks([])) == []


@pytest.mark.integration
class TestRemoteSorter:
    """Tests against a live in-process server"""

    def test_sorts_remotely(self, sort_server):
        """Test that spills are sorted by the server and removed locally"""
        address, server_dir = sort_server
        store = MemoryArtifactStore()
        spills = []
        for lines in (['b\t2\n', 'a\t3\n'], ['a\t1\n', 'é\t0\n', 'c\t9\n']):
            spill = store.create('map-')
            with store.open_write(spill) as f:
                f.writelines(lines)
            spills.append(spill)

        output = RemoteSorter(address, timeout=30).sort(spills, store)

        with store.open_read(output) as f:
            assert f.read() == 'a\t1\na\t3\nb\t2\nc\t9\né\t0\n'
        assert store.artifacts() == [output]
        assert os.listdir(server_dir) == []

    def test_job_with_remote_sorter(self, sort_server):
        """Test a full job shuffled through the server"""
        address, _ = sort_server
        job = CommaSplitJob(store=MemoryArtifactStore(), sorter=RemoteSorter(address, timeout=30),
                            config=EngineConfig())
        out = io.StringIO()
        job.run_map(['a,1', 'b,2', 'a,3'])
        job.run_reduce(out)

        assert out.getvalue() == 'a\t4\nb\t2\n'

    def test_unreachable_server(self):
        """Test that a connection failure is a ShuffleError and spills are removed"""
        store = MemoryArtifactStore()
        spill = store.create('map-')
        with store.open_write(spill) as f:
            f.write('a\t1\n')

        with pytest.raises(ShuffleError):
            RemoteSorter('localhost:1', timeout=2).sort([spill], store)

        assert store.artifacts() == []

    def test_server_sort_failure(self, temp_dir):
        """Test that a failing server sort is reported to the client"""

        class BrokenSorter(MergeSorter):
            def _sort(self, artifacts, output, store):
                raise ShuffleError()

        servicer = SortServicer(FileArtifactStore(os.path.join(temp_dir, 'broken')), BrokenSorter())
        server, port = create_server(0, servicer, max_workers=1, host='localhost')
        try:
            store = MemoryArtifactStore()
            spill = store.create('map-')
            with store.open_write(spill) as f:
                f.write('a\t1\n')

            with pytest.raises(ShuffleError):
                RemoteSorter(f'localhost:{port}', timeout=10).sort([spill], store)

            assert store.artifacts() == []
        finally:
            server.stop(0)

    def test_server_handler_is_registered(self, sort_server):
        """Test that the raw Sort method answers an empty request"""
        address, _ = sort_server
        with grpc.insecure_channel(address) as channel:
            sort = channel.stream_stream('/pseudomr.SortService/Sort')
            assert list(sort(iter([]), timeout=10)) == []
