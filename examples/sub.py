#!/usr/bin/env python3
import sys

from blocknotify import listen, render

ADDR = "tcp://127.0.0.1:28332"

def show(record):
    print(f"RECV {record.topic} #{record.sequence} {render(record).value}")

def main():
    addr = sys.argv[1] if len(sys.argv) > 1 else ADDR
    topics = sys.argv[2:] or [""]
    print(f"SUB connected to {addr}, topics={topics}")
    try:
        listen(addr, topics, show)
    except KeyboardInterrupt:
        pass

if __name__ == "__main__":
    main()
