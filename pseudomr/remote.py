"""
Remote sort service over gRPC.

The client streams the lines of its spill artifacts to a sort server and
receives the sorted lines back. Messages are raw UTF-8 byte chunks that
always hold whole lines, so no protobuf schema is needed.
"""

import time
import logging
from concurrent import futures
from typing import Iterator, List, Optional

import grpc

from pseudomr.artifacts import ARTIFACT_ENCODING, ArtifactStore, FileArtifactStore, discard
from pseudomr.errors import ShuffleError
from pseudomr.sorters import ExternalSorter, Sorter

logger = logging.getLogger(__name__)

SERVICE_NAME = 'pseudomr.SortService'
SORT_METHOD = f'/{SERVICE_NAME}/Sort'
CHUNK_SIZE = 64 * 1024
MAX_MESSAGE_LENGTH = 100 * 1024 * 1024


def iter_chunks(lines, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Pack newline-terminated lines into byte chunks of about chunk_size."""
    buffer = []
    size = 0
    for line in lines:
        if not line.endswith('\n'):
            line += '\n'
        data = line.encode(ARTIFACT_ENCODING)
        buffer.append(data)
        size += len(data)
        if size >= chunk_size:
            yield b''.join(buffer)
            buffer = []
            size = 0
    if buffer:
        yield b''.join(buffer)


class SortServicer:
    """Sorts the streamed lines of one request with a local sorter"""

    def __init__(self, store: Optional[ArtifactStore] = None, sorter: Optional[Sorter] = None):
        self.store = store or FileArtifactStore()
        self.sorter = sorter or ExternalSorter()

    def Sort(self, request_iterator, context):
        """Receive chunks, sort them, stream the sorted lines back"""
        spill = self.store.create('remote-')
        received = 0
        try:
            with self.store.open_write(spill) as f:
                for chunk in request_iterator:
                    f.write(chunk.decode(ARTIFACT_ENCODING))
                    received += len(chunk)
        except (OSError, UnicodeDecodeError) as e:
            discard(self.store, [spill])
            logger.error(f"Failed to receive sort data: {e}")
            context.abort(grpc.StatusCode.INTERNAL, f"Unable to receive data: {e}")

        logger.info(f"Received {received} bytes to sort")
        try:
            sorted_artifact = self.sorter.sort([spill], self.store)
        except ShuffleError as e:
            context.abort(grpc.StatusCode.INTERNAL, str(e))

        try:
            with self.store.open_read(sorted_artifact) as f:
                yield from iter_chunks(f)
        finally:
            discard(self.store, [sorted_artifact])

    def handler(self) -> grpc.GenericRpcHandler:
        """Generic handler registering Sort with raw bytes messages."""
        return grpc.method_handlers_generic_handler(SERVICE_NAME, {
            'Sort': grpc.stream_stream_rpc_method_handler(self.Sort),
        })


def create_server(port: int, servicer: Optional[SortServicer] = None, max_workers: int = 4,
                  host: str = '[::]'):
    """
    Build and start a sort server

    Returns:
        (server, bound_port) tuple; port 0 binds an ephemeral port
    """
    servicer = servicer or SortServicer()
    server = grpc.server(
        futures.ThreadPoolExecutor(max_workers=max_workers),
        options=[
            ('grpc.max_send_message_length', MAX_MESSAGE_LENGTH),
            ('grpc.max_receive_message_length', MAX_MESSAGE_LENGTH),
        ]
    )
    server.add_generic_rpc_handlers((servicer.handler(),))
    bound_port = server.add_insecure_port(f'{host}:{port}')
    server.start()
    logger.info(f"Sort server started on port {bound_port}")
    return server, bound_port


def serve(port: int, servicer: Optional[SortServicer] = None, max_workers: int = 4):
    """Run a sort server until interrupted"""
    server, _ = create_server(port, servicer, max_workers)
    try:
        while True:
            time.sleep(86400)
    except KeyboardInterrupt:
        server.stop(0)


class RemoteSorter(Sorter):
    """Sorts by streaming spill artifacts to a remote sort service"""

    def __init__(self, address: str, timeout: Optional[float] = None):
        """
        Initialize the sorter

        Args:
            address: Sort server in format 'host:port'
            timeout: Deadline in seconds for the whole call, None for no limit
        """
        self.address = address
        self.timeout = timeout

    def _request_chunks(self, artifacts: List[str], store: ArtifactStore) -> Iterator[bytes]:
        for artifact in artifacts:
            with store.open_read(artifact) as f:
                yield from iter_chunks(f)

    def _sort(self, artifacts: List[str], output: str, store: ArtifactStore):
        logger.info(f"Starting remote sort of {len(artifacts)} artifacts on {self.address}")
        try:
            with grpc.insecure_channel(
                self.address,
                options=[
                    ('grpc.max_send_message_length', MAX_MESSAGE_LENGTH),
                    ('grpc.max_receive_message_length', MAX_MESSAGE_LENGTH),
                ]
            ) as channel:
                sort = channel.stream_stream(SORT_METHOD)
                responses = sort(self._request_chunks(artifacts, store), timeout=self.timeout)
                with store.open_write(output) as out:
                    for chunk in responses:
                        out.write(chunk.decode(ARTIFACT_ENCODING))
        except grpc.RpcError as e:
            logger.error(f"gRPC error sorting on {self.address}: {e.details()}")
            raise ShuffleError(f"Unable to sort/shuffle data: {e.details()}")

        logger.info(f"Remote sort done: {output}")
