"""Minimal stand-in for a language server speaking Content-Length framing on stdio.

Every request body is echoed back verbatim. A few methods change behaviour:
- "exit": terminate without replying
- "garbage": emit a header block without Content-Length before the echo

Options:
    --record PATH   append every raw frame received on stdin to PATH
    --ticks N       after the first echo, emit N "tick" notifications
                    (without reading stdin) before resuming
    --tick-interval seconds between ticks
"""

import argparse
import json
import sys
import time


def read_frame(stdin):
    header = b""
    while not header.endswith(b"\r\n\r\n"):
        ch = stdin.read(1)
        if not ch:
            return None, None
        header += ch

    length = 0
    for line in header.decode("ascii").split("\r\n"):
        if line.lower().startswith("content-length:"):
            length = int(line.split(":", 1)[1].strip())

    body = stdin.read(length)
    return header + body, body


def write_frame(stdout, body):
    stdout.write(b"Content-Length: %d\r\n\r\n" % len(body) + body)
    stdout.flush()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--record")
    parser.add_argument("--ticks", type=int, default=0)
    parser.add_argument("--tick-interval", type=float, default=0.1)
    args = parser.parse_args()

    stdin = sys.stdin.buffer
    stdout = sys.stdout.buffer
    first = True

    while True:
        raw, body = read_frame(stdin)
        if raw is None:
            return 0

        if args.record:
            with open(args.record, "ab") as f:
                f.write(raw)

        method = json.loads(body.decode("utf-8")).get("method")
        if method == "exit":
            return 0
        if method == "garbage":
            stdout.write(b"X-Junk: 1\r\n\r\n")
            stdout.flush()

        write_frame(stdout, body)

        if first and args.ticks:
            for n in range(args.ticks):
                tick = {"jsonrpc": "2.0", "method": "tick", "params": {"n": n}}
                write_frame(stdout, json.dumps(tick).encode("utf-8"))
                time.sleep(args.tick_interval)
        first = False


if __name__ == "__main__":
    sys.exit(main())
