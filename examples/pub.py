#!/usr/bin/env python3
"""Stand-in for a daemon's notification feed: publishes hashblock/hashtx messages.

Every tenth message skips a hashtx sequence number and every 25th message is
sent without its sequence frame, so a listener shows gap and decode-error handling.
"""
import hashlib
import struct
import sys
import time
import zmq

PUB_ADDR = "tcp://127.0.0.1:28332"

def main():
    addr = sys.argv[1] if len(sys.argv) > 1 else PUB_ADDR
    ctx = zmq.Context.instance()
    sock = ctx.socket(zmq.PUB)
    sock.bind(addr)
    time.sleep(0.2)
    seq = {"hashblock": 0, "hashtx": 0}
    n = 0
    while True:
        n += 1
        topic = "hashblock" if n % 5 == 0 else "hashtx"
        body = hashlib.sha256(str(n).encode()).digest()
        if topic == "hashtx" and n % 10 == 1:
            seq[topic] += 1
        frames = [topic.encode(), body, struct.pack("<I", seq[topic] & 0xFFFFFFFF)]
        if n % 25 == 0:
            frames = frames[:2]
        sock.send_multipart(frames)
        print(f"PUB {topic} {seq[topic]} parts={len(frames)}")
        seq[topic] += 1
        time.sleep(0.5)

if __name__ == "__main__":
    main()
