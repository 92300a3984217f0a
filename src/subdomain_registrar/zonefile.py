"""
Zone file codec for batched subdomain registrations.

Each queued operation becomes one TXT record set in the parent domain's
zone file. The registrant's own zone file is carried base64-encoded and cut
into pieces so that every ``zfN=`` string stays under the 255 byte TXT
string limit. All functions here are pure.
"""

import base64
import re

from .models import SubdomainOperation, UriEntry, ZonefileUpdate

# "zf99=" uses 5 of the 255 bytes available to a TXT string
ZONEFILE_PIECE_SIZE = 250
DEFAULT_TTL = 3600
DEFAULT_ZONEFILE_SIZE = 4096

URI_RECORD_PATTERN = re.compile(
    r'^(?P<name>\S+)\s+(?:\d+\s+)?(?:IN\s+)?URI\s+(?P<priority>\d+)\s+'
    r'(?P<weight>\d+)\s+"(?P<target>[^"]*)"',
    re.IGNORECASE,
)


def destruct_zonefile(zonefile: str) -> list[str]:
    """
    Base64-encode a zone file and split it into fixed-size pieces.

    Args:
        zonefile: The registrant's zone file payload

    Returns:
        Ordered list of base64 strings of at most 250 characters each
    """
    encoded = base64.b64encode(zonefile.encode("utf-8")).decode("ascii")
    pieces = []
    for start in range(0, len(encoded), ZONEFILE_PIECE_SIZE):
        piece = encoded[start:start + ZONEFILE_PIECE_SIZE]
        if piece:
            pieces.append(piece)
    return pieces


def reassemble_zonefile(pieces: list[str]) -> str:
    """Join pieces produced by destruct_zonefile and decode them."""
    return base64.b64decode("".join(pieces)).decode("utf-8")


def subdomain_op_to_record(operation: SubdomainOperation) -> dict:
    """
    Build the TXT record set for a single subdomain operation.

    Returns:
        Dict with ``name`` and the ordered ``txt`` field strings
    """
    pieces = destruct_zonefile(operation.zonefile)
    txt = [
        f"owner={operation.owner}",
        f"seqn={operation.sequence_number}",
        f"parts={len(pieces)}",
    ]
    txt.extend(f"zf{index}={piece}" for index, piece in enumerate(pieces))

    if operation.signature:
        txt.append(f"sig={operation.signature}")

    return {"name": operation.subdomain_name, "txt": txt}


def make_zonefile(
    origin: str,
    uri_entries: list[UriEntry],
    txt_records: list[dict],
    ttl: int = DEFAULT_TTL,
) -> str:
    """Render a zone file: origin, TTL, TXT records, then URI records."""
    lines = [f"$ORIGIN {origin}", f"$TTL {ttl}"]
    for record in txt_records:
        strings = " ".join(f'"{value}"' for value in record["txt"])
        lines.append(f"{record['name']}\tIN\tTXT\t{strings}")
    for entry in uri_entries:
        lines.append(
            f'{entry.name}\tIN\tURI\t{entry.priority}\t{entry.weight}\t"{entry.target}"'
        )
    return "\n".join(lines) + "\n"


def make_update_zonefile(
    domain_name: str,
    uri_entries: list[UriEntry],
    operations: list[SubdomainOperation],
    max_zonefile_bytes: int,
) -> ZonefileUpdate:
    """
    Greedily pack operations into a zone file under a byte ceiling.

    Operations are appended in order and the whole zone file is re-rendered
    after each one. Packing stops at the first operation whose addition would
    make the rendered size reach ``max_zonefile_bytes``; the last render that
    fit is returned. If the header and URI records alone reach the limit,
    nothing fits and the zone file is empty. Re-rendering is quadratic in
    batch size, which is fine for the few dozen names a 4 KiB zone file can
    hold.

    Args:
        domain_name: The registrar's parent domain ($ORIGIN)
        uri_entries: Informational URI records to include
        operations: Candidate operations, in queue order
        max_zonefile_bytes: Exclusive upper bound on the rendered size

    Returns:
        ZonefileUpdate with the zone file and the names it contains
    """
    records: list[dict] = []
    included: list[str] = []
    zonefile = make_zonefile(domain_name, uri_entries, records)
    if len(zonefile.encode("utf-8")) >= max_zonefile_bytes:
        return ZonefileUpdate(zonefile="", included_names=included)

    for operation in operations:
        records.append(subdomain_op_to_record(operation))
        candidate = make_zonefile(domain_name, uri_entries, records)
        if len(candidate.encode("utf-8")) < max_zonefile_bytes:
            zonefile = candidate
            included.append(operation.subdomain_name)
        else:
            records.pop()
            break

    return ZonefileUpdate(zonefile=zonefile, included_names=included)


def parse_uri_records(zonefile: str) -> list[UriEntry]:
    """Extract URI records from a zone file, ignoring everything else."""
    entries = []
    for line in zonefile.splitlines():
        match = URI_RECORD_PATTERN.match(line.strip())
        if match:
            entries.append(UriEntry(
                name=match.group("name"),
                target=match.group("target"),
                priority=int(match.group("priority")),
                weight=int(match.group("weight")),
            ))
    return entries


def parse_txt_records(zonefile: str) -> list[dict]:
    """Extract subdomain TXT record sets (name plus field strings)."""
    records = []
    for line in zonefile.splitlines():
        parts = line.split("\t")
        if len(parts) >= 4 and parts[1] == "IN" and parts[2] == "TXT":
            records.append({
                "name": parts[0],
                "txt": re.findall(r'"([^"]*)"', "\t".join(parts[3:])),
            })
    return records
