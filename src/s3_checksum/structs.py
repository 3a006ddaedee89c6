from typing import NamedTuple


class PartRange(NamedTuple):
    part_number: int
    start: int
    end: int
    size: int


class PartInfo(NamedTuple):
    part_number: int
    size: int
    algorithm: str
    checksum: bytes
    md5_checksum: bytes


class AggregateResult(NamedTuple):
    filename: str
    part_size: int
    part_list: list[PartInfo]
    checksum: bytes
    etag: bytes
    algorithm: str

    @property
    def part_count(self) -> int:
        return len(self.part_list)

    @property
    def file_size(self) -> int:
        return sum(part.size for part in self.part_list)


class ObjectAttributes(NamedTuple):
    bucket: str
    key: str
    size: int
    etag: bytes
    checksum: bytes | None
    algorithm: str | None
    part_count: int


class PartUploadResult(NamedTuple):
    part_number: int
    bytes_transferred: int
    time_taken: float
    etag: str
    checksum: str


class UploadResult(NamedTuple):
    bucket: str
    key: str
    etag: bytes
    checksum: bytes | None
    parts: list[PartUploadResult]


class UploadPartInfo(NamedTuple):
    part_number: int
    start_byte: int
    end_byte: int
    url: str
    checksum: str
