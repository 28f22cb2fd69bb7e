from bundlepatch.cli.patch import main

raise SystemExit(main())
