from lambdasync.cli import main

raise SystemExit(main())
