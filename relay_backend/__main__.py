from relay_backend.backend import main

main()
