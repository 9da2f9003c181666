# manage.py
from caddylink import create_app
from caddylink.exceptions import MarketError
from caddylink.models.settlement import JOB_FAILED
from caddylink.services.contract_service import ContractService
from caddylink.services.payout_service import PayoutService
from caddylink.services.settlement_service import SettlementService

app = create_app()

def manual_trigger():
    print("========================================")
    print("CaddyLink 營運手動工具")
    print("========================================")
    print("1. 執行違約金結算批次")
    print("2. 列出結算失敗並重新送出")
    print("3. 執行合約到期結案")
    print("4. 計算賽事桿弟分潤")
    print("========================================")

    choice = input("請選擇操作 (1-4): ")

    with app.app_context():
        if choice == '1':
            print("🚀 [手動] 執行結算批次...")
            stats = SettlementService.process_due_jobs()
            print(f"✅ 結算完成: {stats}")

        elif choice == '2':
            failed = SettlementService.list_jobs(status=JOB_FAILED)
            if not failed:
                print("✅ 沒有失敗的結算。")
                return
            for job in failed:
                print(f"- {job.contract_id}: {job.last_error}")
            target = input("請輸入要重新送出的合約 ID (all = 全部): ").strip()
            targets = [j.contract_id for j in failed] if target == 'all' else [target]
            for contract_id in targets:
                try:
                    SettlementService.resubmit(contract_id)
                    print(f"🔁 已重新送出 {contract_id}")
                except MarketError as e:
                    print(f"❌ {contract_id}: {e.message}")

        elif choice == '3':
            completed = ContractService.complete_expired()
            print(f"✅ 已結案 {len(completed)} 份合約。")

        elif choice == '4':
            try:
                tournament_id = int(input("請輸入賽事 ID: "))
                payouts, summary = PayoutService.calculate_for_tournament(tournament_id)
                for p in payouts:
                    print(f"  #{p.rank:>3} {p.player_name} -> {p.caddy_name or '-'}: {p.payout_rate}% = {p.payout_amount:,}")
                print(f"✅ {summary}")
            except ValueError:
                print("❌ 錯誤: 請輸入有效的賽事 ID。")
            except MarketError as e:
                print(f"❌ {e.message}")

        else:
            print("❌ 無效的選擇")

if __name__ == '__main__':
    manual_trigger()
