"""Basic usage scenarios against a Brackit server on localhost:11011.

Run with ``python examples/simple.py`` while a server is listening.
"""

import logging
import sys
import tempfile

from brackit_client import BrackitConnection, BrackitError
from brackit_client.samples import write_sample_documents

HOST = "localhost"
PORT = 11011

logger = logging.getLogger(__name__)


def get_connection() -> BrackitConnection:
    return BrackitConnection(HOST, PORT)


def single_query() -> None:
    with get_connection() as con:
        # run a simple query
        con.query("1+1", sys.stdout)
        print()


def catalog() -> None:
    with get_connection() as con:
        # display the whole catalog
        con.query("doc('_master.xml')", sys.stdout)

        # list all collections in the database
        print()
        con.query("doc('_master.xml')//collection/@name/string()", sys.stdout)
        print()


def document_handling() -> None:
    with tempfile.TemporaryDirectory(prefix="docs") as directory:
        write_sample_documents(directory, count=10)

        with get_connection() as con:
            # import documents in database
            con.query(f"bit:load('mydocs.col', io:ls('{directory}', '\\.xml$'))", sys.stdout)

            # show the catalog entry of the collection
            print()
            con.query("doc('_master.xml')//collection[@name = '/mydocs.col']", sys.stdout)

            # fetch the first document
            print()
            con.query("fn:collection('/mydocs.col')[1]", sys.stdout)

            # create a CAS index of type xs:string for the path //src
            print()
            con.query("bdb:create-cas-index('/mydocs.col', 'xs:string', '//src')", sys.stdout)

            print()
            con.query("doc('_master.xml')//collection[@name = '/mydocs.col']", sys.stdout)

            # scan the CAS index for 192.168.0.0 <= src <= 192.168.128.128
            # (assumes the new index got ID 8)
            print()
            con.query(
                "bdb:scan-cas-index('/mydocs.col', 8, "
                "'192.168.0.0', '192.168.128.128', xs:boolean(1), xs:boolean(1), ())",
                sys.stdout,
            )
            print()


def tx_management() -> None:
    with get_connection() as con:
        # disable auto-commit for the following statements
        con.begin()
        con.query("bit:store('sample.xml', <foo><bar/></foo>)", sys.stdout)
        con.commit()

        con.begin()
        con.query("doc('/sample.xml')", sys.stdout)

        print()
        con.query("insert node <test/> into doc('/sample.xml')/foo/bar", sys.stdout)
        con.query("doc('/sample.xml')", sys.stdout)

        con.rollback()

        # the insert is gone after rollback
        print()
        con.query("doc('/sample.xml')", sys.stdout)
        print()


def main() -> int:
    logging.basicConfig(level=logging.WARNING)
    try:
        single_query()
        catalog()
        document_handling()
        tx_management()
    except BrackitError as e:
        logger.exception(f"Example failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
