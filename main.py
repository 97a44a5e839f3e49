#!/usr/bin/env python3
from mongomigrate.main import main

if __name__ == "__main__":
    main()
